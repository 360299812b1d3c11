import django_filters
from backend.catalog.models import Product
from backend.inventory.models import InventoryBalance


class LowStockFilter(django_filters.FilterSet):
    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')

    class Meta:
        model = Product
        fields = ['category']


class BalanceReportFilter(django_filters.FilterSet):
    """Location and category filters of the expiring and valuation reports"""
    location = django_filters.NumberFilter(field_name='location_id', lookup_expr='exact')
    category = django_filters.NumberFilter(field_name='product__category_id', lookup_expr='exact')

    class Meta:
        model = InventoryBalance
        fields = ['location', 'category']
