from django.conf import settings
from django.db import models


class ErrorLog(models.Model):
    """Deduplicated application error; repeats bump occurrence_count"""
    TYPE_CHOICES = [
        ('client', 'Client'),
        ('server', 'Server'),
        ('api', 'API'),
        ('database', 'Database'),
        ('auth', 'Auth'),
        ('validation', 'Validation'),
        ('network', 'Network'),
        ('unknown', 'Unknown'),
    ]
    SEVERITY_CHOICES = [
        ('info', 'Info'),
        ('warning', 'Warning'),
        ('error', 'Error'),
        ('fatal', 'Fatal'),
    ]
    STATUS_CHOICES = [
        ('open', 'Open'),
        ('investigating', 'Investigating'),
        ('resolved', 'Resolved'),
        ('ignored', 'Ignored'),
    ]

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.SET_NULL, null=True, blank=True, related_name='error_logs')
    error_hash = models.CharField(max_length=64)
    fingerprint = models.CharField(max_length=64, db_index=True)
    error_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='unknown')
    severity = models.CharField(max_length=20, choices=SEVERITY_CHOICES, default='error')
    message = models.TextField()
    stack_trace = models.TextField(blank=True, null=True)
    url = models.TextField(blank=True, null=True)
    method = models.CharField(max_length=10, blank=True, null=True)
    status_code = models.IntegerField(null=True, blank=True)
    user_agent = models.TextField(blank=True, null=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='error_logs')
    metadata = models.JSONField(default=dict, blank=True)
    tags = models.JSONField(default=list, blank=True)
    occurrence_count = models.PositiveIntegerField(default=1)
    first_seen_at = models.DateTimeField()
    last_seen_at = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='open')
    resolved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='resolved_errors')
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolution_note = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"[{self.severity}] {self.message[:60]}"

    class Meta:
        db_table = 'error_logs'
        ordering = ['-last_seen_at']
        indexes = [
            models.Index(fields=['status', '-last_seen_at'], name='idx_errorlog_status_seen'),
            models.Index(fields=['severity'], name='idx_errorlog_severity'),
            models.Index(fields=['error_type'], name='idx_errorlog_type'),
        ]
