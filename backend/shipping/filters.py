import django_filters
from django.db.models import Q
from .models import Shipment


class ShipmentFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(field_name='status', choices=Shipment.STATUS_CHOICES)
    customer = django_filters.NumberFilter(field_name='customer_id', lookup_expr='exact')
    location = django_filters.NumberFilter(field_name='location_id', lookup_expr='exact')
    search = django_filters.CharFilter(method='filter_search', label='Search')
    date_from = django_filters.DateFilter(field_name='ship_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='ship_date', lookup_expr='lte')

    class Meta:
        model = Shipment
        fields = ['status', 'customer', 'location', 'search', 'date_from', 'date_to']

    def filter_search(self, queryset, name, value):
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(
            Q(shipment_number__icontains=search) |
            Q(customer_name__icontains=search) |
            Q(customer__name__icontains=search)
        )
