from django.conf import settings
from django.db import models
from decimal import Decimal
from backend.catalog.models import Product
from backend.locations.models import Location

QTY_DIGITS = {'max_digits': 14, 'decimal_places': 3}
COST_DIGITS = {'max_digits': 14, 'decimal_places': 4}


class InventoryBalance(models.Model):
    """On-hand quantity and weighted average cost per product/location/lot/expiry"""
    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='inventory_balances')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='balances')
    location = models.ForeignKey(Location, on_delete=models.CASCADE, related_name='balances')
    lot_number = models.CharField(max_length=100, blank=True, null=True)
    expiry_date = models.DateField(null=True, blank=True)
    qty_on_hand = models.DecimalField(default=Decimal('0'), **QTY_DIGITS)
    avg_cost = models.DecimalField(default=Decimal('0'), **COST_DIGITS)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.sku} @ {self.location.name}: {self.qty_on_hand}"

    @property
    def inventory_value(self):
        return self.qty_on_hand * self.avg_cost

    class Meta:
        db_table = 'inventory_balances'
        # Uniqueness of the (product, location, lot, expiry) key is enforced by the
        # stock engine, which serializes writers on the product row
        indexes = [
            models.Index(fields=['tenant', 'product', 'location'], name='idx_balance_key'),
            models.Index(fields=['tenant', 'location'], name='idx_balance_location'),
            models.Index(fields=['tenant', 'expiry_date'], name='idx_balance_expiry'),
        ]


class StockMovement(models.Model):
    """Append-only stock ledger; qty is signed"""
    MOVEMENT_TYPE_CHOICES = [
        ('receive', 'Receive'),
        ('ship', 'Ship'),
        ('transfer_out', 'Transfer Out'),
        ('transfer_in', 'Transfer In'),
        ('adjustment', 'Adjustment'),
        ('count_variance', 'Count Variance'),
        ('return_in', 'Return In'),
        ('return_out', 'Return Out'),
        ('void', 'Void'),
    ]
    REFERENCE_TYPE_CHOICES = [
        ('po', 'Purchase Order'),
        ('shipment', 'Shipment'),
        ('transfer', 'Transfer'),
        ('adjustment', 'Adjustment'),
        ('cycle_count', 'Cycle Count'),
        ('return', 'Return'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='stock_movements')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='movements')
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='movements')
    qty = models.DecimalField(**QTY_DIGITS)
    movement_type = models.CharField(max_length=20, choices=MOVEMENT_TYPE_CHOICES)
    reference_type = models.CharField(max_length=20, choices=REFERENCE_TYPE_CHOICES, blank=True, null=True)
    reference_id = models.BigIntegerField(null=True, blank=True)
    lot_number = models.CharField(max_length=100, blank=True, null=True)
    expiry_date = models.DateField(null=True, blank=True)
    unit_cost = models.DecimalField(null=True, blank=True, **COST_DIGITS)
    reason = models.CharField(max_length=50, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_movements')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    def __str__(self):
        return f"{self.movement_type} {self.qty} {self.product.sku}"

    @property
    def extended_cost(self):
        return abs(self.qty) * (self.unit_cost or Decimal('0'))

    class Meta:
        db_table = 'stock_movements'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', 'product', 'location'], name='idx_movement_product_loc'),
            models.Index(fields=['reference_type', 'reference_id'], name='idx_movement_reference'),
        ]


class StockDocument(models.Model):
    """Common header fields of adjustments, transfers and cycle counts"""
    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='+')
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ['-created_at', '-id']


class StockDocumentLine(models.Model):
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='+')
    lot_number = models.CharField(max_length=100, blank=True, null=True)
    expiry_date = models.DateField(null=True, blank=True)

    class Meta:
        abstract = True
        ordering = ['id']


class Adjustment(StockDocument):
    REASON_CHOICES = [
        ('damage', 'Damage'),
        ('shrinkage', 'Shrinkage'),
        ('expiry', 'Expiry'),
        ('correction', 'Correction'),
        ('sample', 'Sample'),
        ('count_variance', 'Count Variance'),
        ('other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    adjustment_number = models.CharField(max_length=30)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='adjustments')
    reason = models.CharField(max_length=20, choices=REASON_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_adjustments')
    approved_at = models.DateTimeField(null=True, blank=True)
    posted_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return self.adjustment_number

    class Meta(StockDocument.Meta):
        db_table = 'adjustments'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'adjustment_number'], name='uniq_adjustment_number'),
        ]


class AdjustmentLine(StockDocumentLine):
    adjustment = models.ForeignKey(Adjustment, on_delete=models.CASCADE, related_name='lines')
    qty = models.DecimalField(**QTY_DIGITS)
    unit_cost = models.DecimalField(null=True, blank=True, **COST_DIGITS)

    class Meta(StockDocumentLine.Meta):
        db_table = 'adjustment_lines'


class Transfer(StockDocument):
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('confirmed', 'Sent'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    transfer_number = models.CharField(max_length=30)
    from_location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='transfers_out')
    to_location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='transfers_in')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    sent_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return self.transfer_number

    class Meta(StockDocument.Meta):
        db_table = 'transfers'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'transfer_number'], name='uniq_transfer_number'),
        ]


class TransferLine(StockDocumentLine):
    transfer = models.ForeignKey(Transfer, on_delete=models.CASCADE, related_name='lines')
    qty = models.DecimalField(**QTY_DIGITS)
    unit_cost = models.DecimalField(null=True, blank=True, **COST_DIGITS)

    class Meta(StockDocumentLine.Meta):
        db_table = 'transfer_lines'


class CycleCount(StockDocument):
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    count_number = models.CharField(max_length=30)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='cycle_counts')
    count_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    posted_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return self.count_number

    class Meta(StockDocument.Meta):
        db_table = 'cycle_counts'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'count_number'], name='uniq_cycle_count_number'),
        ]


class CycleCountLine(StockDocumentLine):
    cycle_count = models.ForeignKey(CycleCount, on_delete=models.CASCADE, related_name='lines')
    system_qty = models.DecimalField(default=Decimal('0'), **QTY_DIGITS)
    counted_qty = models.DecimalField(null=True, blank=True, **QTY_DIGITS)

    @property
    def variance(self):
        return (self.counted_qty or Decimal('0')) - self.system_qty

    class Meta(StockDocumentLine.Meta):
        db_table = 'cycle_count_lines'
