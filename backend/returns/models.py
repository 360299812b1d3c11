from django.conf import settings
from django.db import models
from backend.catalog.models import Product
from backend.locations.models import Location

QTY_DIGITS = {'max_digits': 14, 'decimal_places': 3}
COST_DIGITS = {'max_digits': 14, 'decimal_places': 4}


class Return(models.Model):
    """Goods coming back from a customer or going back to a supplier"""
    RETURN_TYPE_CHOICES = [
        ('customer', 'Customer Return'),
        ('supplier', 'Supplier Return'),
    ]
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='returns')
    return_number = models.CharField(max_length=30)
    return_type = models.CharField(max_length=20, choices=RETURN_TYPE_CHOICES)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='returns')
    # Customer or supplier id depending on return_type
    partner_id = models.BigIntegerField(null=True, blank=True)
    partner_name = models.CharField(max_length=200, blank=True, null=True)
    reason = models.CharField(max_length=200, blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    notes = models.TextField(blank=True, null=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='returns')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.return_number

    class Meta:
        db_table = 'returns'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'return_number'], name='uniq_return_number'),
        ]
        indexes = [
            models.Index(fields=['tenant', 'status'], name='idx_return_tenant_status'),
        ]


class ReturnLine(models.Model):
    return_doc = models.ForeignKey(Return, on_delete=models.CASCADE, related_name='lines')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='return_lines')
    qty = models.DecimalField(**QTY_DIGITS)
    lot_number = models.CharField(max_length=100, blank=True, null=True)
    expiry_date = models.DateField(null=True, blank=True)
    unit_cost = models.DecimalField(null=True, blank=True, **COST_DIGITS)

    class Meta:
        db_table = 'return_lines'
        ordering = ['id']
