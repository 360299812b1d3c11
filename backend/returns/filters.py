import django_filters
from django.db.models import Q
from .models import Return


class ReturnFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(field_name='status', choices=Return.STATUS_CHOICES)
    return_type = django_filters.ChoiceFilter(field_name='return_type', choices=Return.RETURN_TYPE_CHOICES)
    location = django_filters.NumberFilter(field_name='location_id', lookup_expr='exact')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Return
        fields = ['status', 'return_type', 'location', 'search']

    def filter_search(self, queryset, name, value):
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(Q(return_number__icontains=search) | Q(partner_name__icontains=search))
