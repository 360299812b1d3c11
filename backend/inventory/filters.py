import django_filters
from django.db.models import Q
from .models import InventoryBalance, StockMovement


class InventoryBalanceFilter(django_filters.FilterSet):
    location = django_filters.NumberFilter(field_name='location_id', lookup_expr='exact')
    product = django_filters.NumberFilter(field_name='product_id', lookup_expr='exact')
    category = django_filters.NumberFilter(field_name='product__category_id', lookup_expr='exact')
    # Searches product SKU, name and barcode
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = InventoryBalance
        fields = ['location', 'product', 'category', 'search']

    def filter_search(self, queryset, name, value):
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(
            Q(product__sku__icontains=search) |
            Q(product__name__icontains=search) |
            Q(product__barcode__icontains=search)
        )


class StockMovementFilter(django_filters.FilterSet):
    product = django_filters.NumberFilter(field_name='product_id', lookup_expr='exact')
    location = django_filters.NumberFilter(field_name='location_id', lookup_expr='exact')
    movement_type = django_filters.CharFilter(field_name='movement_type', lookup_expr='exact')
    reference_type = django_filters.CharFilter(field_name='reference_type', lookup_expr='exact')
    start_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = StockMovement
        fields = ['product', 'location', 'movement_type', 'reference_type', 'start_date', 'end_date']


class StockDocumentFilter(django_filters.FilterSet):
    """Status, location and date filters shared by the document lists"""
    status = django_filters.CharFilter(field_name='status', lookup_expr='exact')
    location = django_filters.NumberFilter(field_name='location_id', lookup_expr='exact')
    start_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')


class TransferFilter(StockDocumentFilter):
    location = django_filters.NumberFilter(method='filter_location')

    def filter_location(self, queryset, name, value):
        return queryset.filter(Q(from_location_id=value) | Q(to_location_id=value))
