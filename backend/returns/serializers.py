from decimal import Decimal
from rest_framework import serializers
from backend.core.serializers import DocumentSerializer, DocumentLineSerializer
from backend.parties.models import Customer, Supplier
from .models import Return, ReturnLine

PARTNER_MODELS = {'customer': Customer, 'supplier': Supplier}


class ReturnLineSerializer(DocumentLineSerializer):
    class Meta:
        model = ReturnLine
        fields = ['id', 'product', 'product_sku', 'product_name', 'base_uom', 'qty', 'lot_number', 'expiry_date',
                  'unit_cost']
        extra_kwargs = {
            'qty': {'min_value': Decimal('0.001')},
            'unit_cost': {'min_value': Decimal('0')},
        }


class ReturnSerializer(DocumentSerializer):
    number_field = 'return_number'
    number_prefix = 'RET'
    line_parent_field = 'return_doc'

    lines = ReturnLineSerializer(many=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = Return
        fields = ['id', 'return_number', 'return_type', 'location', 'location_name', 'partner_id', 'partner_name',
                  'reason', 'status', 'notes', 'processed_at', 'created_by', 'created_by_name', 'created_at',
                  'updated_at', 'lines']
        read_only_fields = ['return_number', 'status', 'processed_at', 'created_by', 'created_at', 'updated_at']

    def validate_location(self, value):
        return self.check_same_tenant(value, 'Location not found')

    def validate(self, attrs):
        return_type = attrs.get('return_type', getattr(self.instance, 'return_type', None))
        partner_id = attrs.get('partner_id', getattr(self.instance, 'partner_id', None))
        if partner_id is not None and return_type in PARTNER_MODELS:
            partner = PARTNER_MODELS[return_type].objects.filter(pk=partner_id, tenant=self.tenant).first()
            if partner is None:
                raise serializers.ValidationError({'partner_id': [f'{return_type.title()} not found']})
            if not attrs.get('partner_name'):
                attrs['partner_name'] = partner.name
        return attrs
