from django.db import models


class Party(models.Model):
    """Fields shared by suppliers and customers"""
    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='%(class)ss')
    code = models.CharField(max_length=50, blank=True, null=True)
    name = models.CharField(max_length=200)
    contact_name = models.CharField(max_length=200, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=50, blank=True, null=True)
    # street, city, state, postal_code, country
    address = models.JSONField(default=dict, blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.code})" if self.code else self.name

    class Meta:
        abstract = True
        ordering = ['name']


class Supplier(Party):
    """Suppliers"""
    CODE_PREFIX = 'SUP'

    class Meta(Party.Meta):
        db_table = 'suppliers'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'code'], name='uniq_supplier_tenant_code'),
        ]


class Customer(Party):
    """Customers"""
    CODE_PREFIX = 'CUST'

    class Meta(Party.Meta):
        db_table = 'customers'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'code'], name='uniq_customer_tenant_code'),
        ]
