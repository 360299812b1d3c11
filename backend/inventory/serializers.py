from decimal import Decimal
from rest_framework import serializers
from backend.core.serializers import DocumentSerializer, DocumentLineSerializer
from .models import (
    InventoryBalance, StockMovement, Adjustment, AdjustmentLine,
    Transfer, TransferLine, CycleCount, CycleCountLine
)


class InventoryBalanceSerializer(serializers.ModelSerializer):
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    base_uom = serializers.CharField(source='product.base_uom', read_only=True)
    reorder_point = serializers.DecimalField(source='product.reorder_point', max_digits=14, decimal_places=3, read_only=True)
    category_name = serializers.CharField(source='product.category.name', read_only=True, default=None)
    location_name = serializers.CharField(source='location.name', read_only=True)
    inventory_value = serializers.DecimalField(max_digits=20, decimal_places=4, read_only=True)

    class Meta:
        model = InventoryBalance
        fields = ['id', 'product', 'product_sku', 'product_name', 'base_uom', 'reorder_point', 'category_name',
                  'location', 'location_name', 'lot_number', 'expiry_date', 'qty_on_hand', 'avg_cost',
                  'inventory_value', 'updated_at']


class DepletedStockSerializer(InventoryBalanceSerializer):
    last_movement_at = serializers.DateTimeField(read_only=True)

    class Meta(InventoryBalanceSerializer.Meta):
        fields = InventoryBalanceSerializer.Meta.fields + ['last_movement_at']


class StockMovementSerializer(serializers.ModelSerializer):
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)
    extended_cost = serializers.DecimalField(max_digits=20, decimal_places=4, read_only=True)

    class Meta:
        model = StockMovement
        fields = ['id', 'product', 'product_sku', 'product_name', 'location', 'location_name', 'qty',
                  'movement_type', 'reference_type', 'reference_id', 'lot_number', 'expiry_date', 'unit_cost',
                  'extended_cost', 'reason', 'notes', 'created_by', 'created_by_name', 'created_at']


# Adjustments
class AdjustmentLineSerializer(DocumentLineSerializer):
    class Meta:
        model = AdjustmentLine
        fields = ['id', 'product', 'product_sku', 'product_name', 'base_uom', 'qty', 'lot_number', 'expiry_date',
                  'unit_cost']
        extra_kwargs = {'unit_cost': {'min_value': Decimal('0')}}

    def validate_qty(self, value):
        if value == 0:
            raise serializers.ValidationError('Quantity cannot be zero')
        return value


class AdjustmentSerializer(DocumentSerializer):
    number_field = 'adjustment_number'
    number_prefix = 'ADJ'
    line_parent_field = 'adjustment'

    lines = AdjustmentLineSerializer(many=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)
    approved_by_name = serializers.CharField(source='approved_by.name', read_only=True, default=None)

    class Meta:
        model = Adjustment
        fields = ['id', 'adjustment_number', 'location', 'location_name', 'reason', 'notes', 'status',
                  'approved_by', 'approved_by_name', 'approved_at', 'posted_at', 'created_by', 'created_by_name',
                  'created_at', 'updated_at', 'lines']
        read_only_fields = ['adjustment_number', 'status', 'approved_by', 'approved_at', 'posted_at',
                            'created_by', 'created_at', 'updated_at']

    def validate_location(self, value):
        return self.check_same_tenant(value, 'Location not found')


# Transfers
class TransferLineSerializer(DocumentLineSerializer):
    class Meta:
        model = TransferLine
        fields = ['id', 'product', 'product_sku', 'product_name', 'base_uom', 'qty', 'lot_number', 'expiry_date',
                  'unit_cost']
        read_only_fields = ['unit_cost']
        extra_kwargs = {'qty': {'min_value': Decimal('0.001')}}


class TransferSerializer(DocumentSerializer):
    number_field = 'transfer_number'
    number_prefix = 'TRF'
    line_parent_field = 'transfer'

    lines = TransferLineSerializer(many=True)
    from_location_name = serializers.CharField(source='from_location.name', read_only=True)
    to_location_name = serializers.CharField(source='to_location.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = Transfer
        fields = ['id', 'transfer_number', 'from_location', 'from_location_name', 'to_location',
                  'to_location_name', 'notes', 'status', 'sent_at', 'received_at', 'created_by',
                  'created_by_name', 'created_at', 'updated_at', 'lines']
        read_only_fields = ['transfer_number', 'status', 'sent_at', 'received_at', 'created_by',
                            'created_at', 'updated_at']

    def validate_from_location(self, value):
        return self.check_same_tenant(value, 'Location not found')

    def validate_to_location(self, value):
        return self.check_same_tenant(value, 'Location not found')

    def validate(self, attrs):
        from_location = attrs.get('from_location', getattr(self.instance, 'from_location', None))
        to_location = attrs.get('to_location', getattr(self.instance, 'to_location', None))
        if from_location is not None and to_location is not None and from_location.pk == to_location.pk:
            raise serializers.ValidationError({'to_location': ['Source and destination must be different']})
        return attrs


# Cycle counts
class CycleCountLineSerializer(DocumentLineSerializer):
    variance = serializers.DecimalField(max_digits=14, decimal_places=3, read_only=True)

    class Meta:
        model = CycleCountLine
        fields = ['id', 'product', 'product_sku', 'product_name', 'base_uom', 'lot_number', 'expiry_date',
                  'system_qty', 'counted_qty', 'variance']
        read_only_fields = ['system_qty', 'counted_qty']


class CycleCountSerializer(DocumentSerializer):
    number_field = 'count_number'
    number_prefix = 'CNT'
    line_parent_field = 'cycle_count'

    lines = CycleCountLineSerializer(many=True)
    location_name = serializers.CharField(source='location.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = CycleCount
        fields = ['id', 'count_number', 'location', 'location_name', 'count_date', 'notes', 'status', 'posted_at',
                  'created_by', 'created_by_name', 'created_at', 'updated_at', 'lines']
        read_only_fields = ['count_number', 'status', 'posted_at', 'created_by', 'created_at', 'updated_at']

    def validate_location(self, value):
        return self.check_same_tenant(value, 'Location not found')

    def _create_lines(self, document, lines):
        # System quantities are a snapshot of the balances when the count is created
        from .services import available_qty

        for line in lines:
            line['system_qty'] = available_qty(self.tenant, line['product'], document.location,
                                               line.get('lot_number'), line.get('expiry_date'))
        super()._create_lines(document, lines)


class CountEntrySerializer(serializers.Serializer):
    line_id = serializers.IntegerField()
    counted_qty = serializers.DecimalField(max_digits=14, decimal_places=3, min_value=Decimal('0'))


class CountEntriesSerializer(serializers.Serializer):
    lines = CountEntrySerializer(many=True, allow_empty=False)
