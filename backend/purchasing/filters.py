import django_filters
from django.db.models import Q
from .models import PurchaseOrder


class PurchaseOrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(field_name='status', choices=PurchaseOrder.STATUS_CHOICES)
    supplier = django_filters.NumberFilter(field_name='supplier_id', lookup_expr='exact')
    location = django_filters.NumberFilter(field_name='location_id', lookup_expr='exact')
    # Searches PO number and supplier name
    search = django_filters.CharFilter(method='filter_search', label='Search')
    date_from = django_filters.DateFilter(field_name='order_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='order_date', lookup_expr='lte')

    class Meta:
        model = PurchaseOrder
        fields = ['status', 'supplier', 'location', 'search', 'date_from', 'date_to']

    def filter_search(self, queryset, name, value):
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(Q(po_number__icontains=search) | Q(supplier__name__icontains=search))
