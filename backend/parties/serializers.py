from rest_framework import serializers
from backend.core.serializers import TenantScopedSerializer
from backend.core.utils import next_document_number
from .models import Supplier, Customer

ADDRESS_KEYS = ('street', 'city', 'state', 'postal_code', 'country')
PARTY_FIELDS = ['id', 'code', 'name', 'contact_name', 'email', 'phone', 'address', 'active', 'created_at', 'updated_at']


class PartySerializer(TenantScopedSerializer):
    """Supplier/customer serializer; a missing code is allocated from the tenant sequence"""

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required')
        return value

    def validate_code(self, value):
        value = (value or '').strip() or None
        if value is None:
            return None
        model = self.Meta.model
        queryset = model.objects.filter(tenant=self.tenant, code=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Code already exists')
        return value

    def validate_address(self, value):
        if value in (None, ''):
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError('Address must be an object')
        unknown = set(value) - set(ADDRESS_KEYS)
        if unknown:
            raise serializers.ValidationError(f"Unknown address fields: {', '.join(sorted(unknown))}")
        return {key: value[key] for key in ADDRESS_KEYS if value.get(key)}

    def create(self, validated_data):
        model = self.Meta.model
        if not validated_data.get('code'):
            # Skip numbers already taken by manually entered codes
            code = next_document_number(self.tenant, model.CODE_PREFIX, width=4)
            while model.objects.filter(tenant=self.tenant, code=code).exists():
                code = next_document_number(self.tenant, model.CODE_PREFIX, width=4)
            validated_data['code'] = code
        return super().create(validated_data)


class SupplierSerializer(PartySerializer):
    class Meta:
        model = Supplier
        fields = PARTY_FIELDS
        read_only_fields = ['created_at', 'updated_at']


class CustomerSerializer(PartySerializer):
    class Meta:
        model = Customer
        fields = PARTY_FIELDS
        read_only_fields = ['created_at', 'updated_at']
