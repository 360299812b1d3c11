import django_filters
from .models import ErrorLog


class ErrorLogFilter(django_filters.FilterSet):
    """Filters for the platform admin error list"""
    status = django_filters.CharFilter(field_name='status', lookup_expr='exact')
    severity = django_filters.CharFilter(field_name='severity', lookup_expr='exact')
    error_type = django_filters.CharFilter(field_name='error_type', lookup_expr='exact')
    search = django_filters.CharFilter(field_name='message', lookup_expr='icontains', label='Search')
    start_date = django_filters.DateFilter(field_name='last_seen_at', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='last_seen_at', lookup_expr='date__lte')
    tenant = django_filters.NumberFilter(field_name='tenant_id', lookup_expr='exact')

    class Meta:
        model = ErrorLog
        fields = ['status', 'severity', 'error_type', 'search', 'start_date', 'end_date', 'tenant']
