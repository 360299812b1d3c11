from decimal import Decimal
from rest_framework import serializers
from backend.core.serializers import DocumentSerializer, DocumentLineSerializer
from .models import PurchaseOrder, PurchaseOrderLine


class PurchaseOrderLineSerializer(DocumentLineSerializer):
    qty_field = 'qty_ordered'
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrderLine
        fields = ['id', 'product', 'product_sku', 'product_name', 'base_uom', 'qty_ordered', 'qty_received',
                  'unit_cost', 'line_total']
        read_only_fields = ['qty_received']
        extra_kwargs = {'unit_cost': {'min_value': Decimal('0')}}

    def get_line_total(self, obj):
        return str(obj.get_line_total())

    def validate_qty_ordered(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than 0')
        return value


class PurchaseOrderSerializer(DocumentSerializer):
    number_field = 'po_number'
    number_prefix = 'PO'
    line_parent_field = 'purchase_order'

    lines = PurchaseOrderLineSerializer(many=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)
    total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrder
        fields = ['id', 'po_number', 'supplier', 'supplier_name', 'location', 'location_name', 'order_date',
                  'expected_date', 'status', 'notes', 'total', 'created_by', 'created_by_name', 'created_at',
                  'updated_at', 'lines']
        read_only_fields = ['po_number', 'status', 'created_by', 'created_at', 'updated_at']

    def get_total(self, obj):
        return str(obj.get_total())

    def validate_supplier(self, value):
        return self.check_same_tenant(value, 'Supplier not found')

    def validate_location(self, value):
        return self.check_same_tenant(value, 'Location not found')

    def validate_lines(self, value):
        value = super().validate_lines(value)
        product_ids = [line['product'].id for line in value]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError('Each product may appear only once per purchase order')
        return value

    def validate(self, attrs):
        order_date = attrs.get('order_date', getattr(self.instance, 'order_date', None))
        expected_date = attrs.get('expected_date', getattr(self.instance, 'expected_date', None))
        if order_date and expected_date and expected_date < order_date:
            raise serializers.ValidationError({'expected_date': ['Expected date cannot be before the order date']})
        return attrs


class ReceiveLineSerializer(serializers.Serializer):
    line_id = serializers.IntegerField()
    qty_to_receive = serializers.DecimalField(max_digits=14, decimal_places=3, min_value=Decimal('0'))
    lot_number = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    expiry_date = serializers.DateField(required=False, allow_null=True)


class ReceiveSerializer(serializers.Serializer):
    lines = ReceiveLineSerializer(many=True, allow_empty=False)
    received_date = serializers.DateField(required=False, allow_null=True)
