from decimal import Decimal
from rest_framework import serializers
from backend.core.serializers import DocumentSerializer, DocumentLineSerializer
from .models import Shipment, ShipmentLine


class ShipmentLineSerializer(DocumentLineSerializer):
    class Meta:
        model = ShipmentLine
        fields = ['id', 'product', 'product_sku', 'product_name', 'base_uom', 'qty', 'lot_number', 'expiry_date',
                  'unit_cost']
        read_only_fields = ['unit_cost']
        extra_kwargs = {'qty': {'min_value': Decimal('0.001')}}


class ShipmentSerializer(DocumentSerializer):
    number_field = 'shipment_number'
    number_prefix = 'SHP'
    line_parent_field = 'shipment'

    lines = ShipmentLineSerializer(many=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    display_customer_name = serializers.CharField(read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = Shipment
        fields = ['id', 'shipment_number', 'location', 'location_name', 'customer', 'customer_name',
                  'display_customer_name', 'ship_date', 'status', 'notes', 'created_by', 'created_by_name',
                  'created_at', 'updated_at', 'lines']
        read_only_fields = ['shipment_number', 'status', 'created_by', 'created_at', 'updated_at']

    def validate_location(self, value):
        return self.check_same_tenant(value, 'Location not found')

    def validate_customer(self, value):
        return self.check_same_tenant(value, 'Customer not found')

    def validate_customer_name(self, value):
        return (value or '').strip() or None


class ShipSerializer(serializers.Serializer):
    ship_date = serializers.DateField(required=False, allow_null=True)
