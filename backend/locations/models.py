from django.db import models


class Location(models.Model):
    """Warehouse, store or outlet holding inventory; may nest under a parent location"""
    TYPE_CHOICES = [
        ('warehouse', 'Warehouse'),
        ('store', 'Store'),
        ('outlet', 'Outlet'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='locations')
    name = models.CharField(max_length=100)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='warehouse')
    parent = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='children')
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def ancestors(self):
        """Parent chain, nearest first"""
        seen = set()
        node = self.parent
        while node is not None and node.pk not in seen:
            seen.add(node.pk)
            yield node
            node = node.parent

    class Meta:
        db_table = 'locations'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'name'], name='uniq_location_tenant_name'),
        ]
