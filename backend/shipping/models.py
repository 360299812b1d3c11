from django.conf import settings
from django.db import models
from backend.catalog.models import Product
from backend.locations.models import Location
from backend.parties.models import Customer

QTY_DIGITS = {'max_digits': 14, 'decimal_places': 3}
COST_DIGITS = {'max_digits': 14, 'decimal_places': 4}


class Shipment(models.Model):
    """Outbound shipment from one location to a customer"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('confirmed', 'Confirmed'),
        ('completed', 'Shipped'),
        ('cancelled', 'Cancelled'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='shipments')
    shipment_number = models.CharField(max_length=30)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='shipments')
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, null=True, blank=True, related_name='shipments')
    # Free-text recipient for shipments without a customer record
    customer_name = models.CharField(max_length=200, blank=True, null=True)
    ship_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='shipments')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.shipment_number

    @property
    def display_customer_name(self):
        if self.customer_id:
            return self.customer.name
        return self.customer_name

    class Meta:
        db_table = 'shipments'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'shipment_number'], name='uniq_shipment_number'),
        ]
        indexes = [
            models.Index(fields=['tenant', 'status'], name='idx_shipment_tenant_status'),
        ]


class ShipmentLine(models.Model):
    shipment = models.ForeignKey(Shipment, on_delete=models.CASCADE, related_name='lines')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='shipment_lines')
    qty = models.DecimalField(**QTY_DIGITS)
    lot_number = models.CharField(max_length=100, blank=True, null=True)
    expiry_date = models.DateField(null=True, blank=True)
    unit_cost = models.DecimalField(null=True, blank=True, **COST_DIGITS)

    class Meta:
        db_table = 'shipment_lines'
        ordering = ['id']
