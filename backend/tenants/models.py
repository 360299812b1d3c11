import secrets

from django.conf import settings
from django.db import models
from django.utils import timezone


def default_tenant_settings():
    return {
        'reservation_expiry_hours': 24,
        'require_adjustment_approval': False,
        'default_currency': 'USD',
    }


def generate_invitation_token():
    return secrets.token_urlsafe(32)


class Tenant(models.Model):
    """Customer organization; every business row is scoped to one"""
    name = models.CharField(max_length=100)
    settings = models.JSONField(default=default_tenant_settings, blank=True)
    max_users = models.PositiveIntegerField(default=10)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def get_setting(self, key):
        return (self.settings or {}).get(key, default_tenant_settings().get(key))

    @property
    def requires_adjustment_approval(self):
        return bool(self.get_setting('require_adjustment_approval'))

    class Meta:
        db_table = 'tenants'
        ordering = ['name']


class UserInvitationQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(accepted_at__isnull=True, expires_at__gt=timezone.now())

    def expired(self):
        return self.filter(accepted_at__isnull=True, expires_at__lte=timezone.now())


class UserInvitation(models.Model):
    """Invitation for an email address to join a tenant with a role"""
    ROLE_CHOICES = [
        ('admin', 'Administrator'),
        ('manager', 'Manager'),
        ('staff', 'Staff'),
        ('readonly', 'Read Only'),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='invitations')
    email = models.EmailField()
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='staff')
    token = models.CharField(max_length=64, unique=True, default=generate_invitation_token)
    invited_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='sent_invitations')
    invited_by_name = models.CharField(max_length=100, blank=True, null=True)
    expires_at = models.DateTimeField()
    accepted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = UserInvitationQuerySet.as_manager()

    def __str__(self):
        return f"{self.email} -> {self.tenant}"

    @property
    def is_expired(self):
        return self.expires_at <= timezone.now()

    @property
    def is_pending(self):
        return self.accepted_at is None and not self.is_expired

    class Meta:
        db_table = 'user_invitations'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'email'], name='idx_invitation_tenant_email'),
        ]
