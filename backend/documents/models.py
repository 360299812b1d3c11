from django.conf import settings
from django.db import models


class Document(models.Model):
    """File attached to a business record (product, purchase order, ...)"""
    ENTITY_TYPE_CHOICES = [
        ('product', 'Product'),
        ('category', 'Category'),
        ('location', 'Location'),
        ('supplier', 'Supplier'),
        ('customer', 'Customer'),
        ('purchase_order', 'Purchase Order'),
        ('shipment', 'Shipment'),
        ('transfer', 'Transfer'),
        ('adjustment', 'Adjustment'),
        ('cycle_count', 'Cycle Count'),
        ('return', 'Return'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='documents')
    entity_type = models.CharField(max_length=20, choices=ENTITY_TYPE_CHOICES)
    entity_id = models.BigIntegerField()
    file_name = models.CharField(max_length=255)
    file_size = models.PositiveBigIntegerField()
    mime_type = models.CharField(max_length=100)
    storage_path = models.CharField(max_length=500)
    version = models.PositiveIntegerField(default=1)
    notes = models.TextField(blank=True, null=True)
    uploaded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='documents')
    uploaded_by_name = models.CharField(max_length=100, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.file_name} v{self.version}"

    class Meta:
        db_table = 'documents'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', 'entity_type', 'entity_id'], name='idx_document_entity'),
        ]
