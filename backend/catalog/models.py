from django.db import models
from decimal import Decimal


# Units whose quantities may be fractional
DECIMAL_UOMS = ('KG', 'G', 'L', 'ML', 'M', 'CM')


class Category(models.Model):
    """Product categories"""
    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='categories')
    name = models.CharField(max_length=100, db_index=True)
    parent = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='children')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'name'], name='uniq_category_tenant_name'),
        ]


class Product(models.Model):
    """Product master"""
    UOM_CHOICES = [
        ('EA', 'Each'),
        ('KG', 'Kilogram'),
        ('G', 'Gram'),
        ('L', 'Liter'),
        ('ML', 'Milliliter'),
        ('M', 'Meter'),
        ('CM', 'Centimeter'),
        ('BOX', 'Box'),
        ('PACK', 'Pack'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='products')
    sku = models.CharField(max_length=50, db_index=True)
    name = models.CharField(max_length=200, db_index=True)
    barcode = models.CharField(max_length=50, blank=True, null=True, db_index=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    base_uom = models.CharField(max_length=10, choices=UOM_CHOICES, default='EA')
    pack_uom_name = models.CharField(max_length=20, blank=True, null=True)
    pack_qty_in_base = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    current_cost = models.DecimalField(max_digits=12, decimal_places=4, default=Decimal('0'))
    reorder_point = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0'))
    reorder_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0'))
    track_expiry = models.BooleanField(default=False)
    track_lot = models.BooleanField(default=False)
    active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.sku})"

    @property
    def allow_decimal_qty(self):
        return self.base_uom in DECIMAL_UOMS

    def is_valid_qty(self, qty):
        """Products counted in whole units only take integral quantities"""
        qty = Decimal(qty)
        return self.allow_decimal_qty or qty == qty.to_integral_value()

    class Meta:
        db_table = 'products'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'sku'], name='uniq_product_tenant_sku'),
        ]
        indexes = [
            models.Index(fields=['tenant', 'active'], name='idx_product_tenant_active'),
        ]
