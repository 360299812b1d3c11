import django_filters
from .models import AuditLog


class AuditLogFilter(django_filters.FilterSet):
    resource_type = django_filters.CharFilter(field_name='resource_type', lookup_expr='exact')
    resource_id = django_filters.CharFilter(field_name='resource_id', lookup_expr='exact')
    action = django_filters.CharFilter(field_name='action', lookup_expr='exact')
    user_id = django_filters.NumberFilter(field_name='user_id', lookup_expr='exact')
    start_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = AuditLog
        fields = ['resource_type', 'resource_id', 'action', 'user_id', 'start_date', 'end_date']
