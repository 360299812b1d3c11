import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Filter for Product list using django-filter"""

    # Searches SKU, name and barcode
    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    active = django_filters.CharFilter(method='filter_active', label='Active')
    track_expiry = django_filters.BooleanFilter(field_name='track_expiry')
    track_lot = django_filters.BooleanFilter(field_name='track_lot')

    class Meta:
        model = Product
        fields = ['search', 'category', 'active', 'track_expiry', 'track_lot']

    def filter_search(self, queryset, name, value):
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(
            Q(sku__icontains=search) | Q(name__icontains=search) | Q(barcode__icontains=search)
        )

    def filter_active(self, queryset, name, value):
        """'true'/'false' filter; 'all' or anything else leaves the queryset alone"""
        value = (value or '').lower()
        if value in ('true', '1', 'yes'):
            return queryset.filter(active=True)
        if value in ('false', '0', 'no'):
            return queryset.filter(active=False)
        return queryset
