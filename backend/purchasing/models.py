from django.conf import settings
from django.db import models
from decimal import Decimal
from backend.catalog.models import Product
from backend.locations.models import Location
from backend.parties.models import Supplier

QTY_DIGITS = {'max_digits': 14, 'decimal_places': 3}
COST_DIGITS = {'max_digits': 14, 'decimal_places': 4}


class PurchaseOrder(models.Model):
    """Purchase order to a supplier, received into one location"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('confirmed', 'Confirmed'),
        ('partial', 'Partially Received'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='purchase_orders')
    po_number = models.CharField(max_length=30)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='purchase_orders')
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='purchase_orders')
    order_date = models.DateField()
    expected_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.po_number

    def get_total(self):
        """Ordered value of all lines"""
        return sum((line.qty_ordered * line.unit_cost for line in self.lines.all()), Decimal('0'))

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-order_date', '-created_at']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'po_number'], name='uniq_po_number'),
        ]
        indexes = [
            models.Index(fields=['tenant', 'status'], name='idx_po_tenant_status'),
            models.Index(fields=['supplier', 'status'], name='idx_po_supplier_status'),
        ]


class PurchaseOrderLine(models.Model):
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='lines')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='purchase_order_lines')
    qty_ordered = models.DecimalField(**QTY_DIGITS)
    qty_received = models.DecimalField(default=Decimal('0'), **QTY_DIGITS)
    unit_cost = models.DecimalField(default=Decimal('0'), **COST_DIGITS)

    @property
    def qty_outstanding(self):
        return self.qty_ordered - self.qty_received

    def get_line_total(self):
        return self.qty_ordered * self.unit_cost

    class Meta:
        db_table = 'purchase_order_lines'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(fields=['purchase_order', 'product'], name='uniq_po_line_product'),
        ]
