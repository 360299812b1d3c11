from rest_framework import serializers
from backend.core.serializers import TenantScopedSerializer
from .models import Location


class LocationSerializer(TenantScopedSerializer):
    parent_name = serializers.CharField(source='parent.name', read_only=True, default=None)

    class Meta:
        model = Location
        fields = ['id', 'name', 'type', 'parent', 'parent_name', 'active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required')
        queryset = Location.objects.filter(tenant=self.tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Location name already exists')
        return value

    def validate_parent(self, value):
        self.check_same_tenant(value, 'Parent location not found')
        if value is None or self.instance is None:
            return value
        # Parent may be neither the location itself nor one of its descendants
        if value.pk == self.instance.pk or any(a.pk == self.instance.pk for a in value.ancestors()):
            raise serializers.ValidationError('A location cannot be nested under itself or its descendants')
        return value
