from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class TenantUserManager(UserManager):
    """Email is the login; username mirrors it"""

    def create_user(self, email=None, password=None, **extra_fields):
        email = self.normalize_email(email)
        username = extra_fields.pop('username', None) or email
        return super().create_user(username, email, password, **extra_fields)

    def create_superuser(self, email=None, password=None, **extra_fields):
        username = extra_fields.pop('username', None) or email
        extra_fields.setdefault('is_platform_admin', True)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """Tenant member. Platform admins may have no tenant."""
    ROLE_CHOICES = [
        ('admin', 'Administrator'),
        ('manager', 'Manager'),
        ('staff', 'Staff'),
        ('readonly', 'Read Only'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, null=True, blank=True, related_name='users')
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=100, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='staff')
    is_platform_admin = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    objects = TenantUserManager()

    def __str__(self):
        return self.name or self.email

    @property
    def can_write(self):
        return self.role != 'readonly'

    @property
    def can_manage_users(self):
        return self.role in ('admin', 'manager')

    class Meta:
        db_table = 'users'
        ordering = ['name']


class DocumentSequence(models.Model):
    """Per-tenant counter behind PO-000001 style document numbers"""
    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='document_sequences')
    prefix = models.CharField(max_length=10)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.prefix}:{self.last_value}"

    class Meta:
        db_table = 'document_sequences'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'prefix'], name='uniq_docseq_tenant_prefix'),
        ]


class AuditLog(models.Model):
    """Append-only record of who did what, with before/after values"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('login', 'Login'),
        ('logout', 'Logout'),
        ('confirm', 'Confirm'),
        ('cancel', 'Cancel'),
        ('receive', 'Receive'),
        ('ship', 'Ship'),
        ('transfer', 'Transfer'),
        ('adjust', 'Adjust'),
        ('count', 'Count'),
        ('return', 'Return'),
        ('approve', 'Approve'),
        ('upload', 'Upload'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, null=True, blank=True, related_name='audit_logs')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    user_name = models.CharField(max_length=100, blank=True, null=True)
    user_email = models.CharField(max_length=254, blank=True, null=True)
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    resource_type = models.CharField(max_length=50)
    resource_id = models.CharField(max_length=100, blank=True, null=True)
    resource_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name (e.g., SKU, PO number)")
    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    changes = models.JSONField(null=True, blank=True)
    notes = models.TextField(blank=True, null=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.resource_type} {self.resource_id}"

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', '-created_at'], name='idx_audit_tenant_created'),
            models.Index(fields=['resource_type', 'resource_id'], name='idx_audit_resource'),
            models.Index(fields=['action'], name='idx_audit_action'),
        ]
