from django.contrib import admin
from .models import ErrorLog


@admin.register(ErrorLog)
class ErrorLogAdmin(admin.ModelAdmin):
    list_display = ['message', 'error_type', 'severity', 'status', 'occurrence_count', 'tenant', 'last_seen_at']
    list_filter = ['status', 'severity', 'error_type']
    search_fields = ['message', 'url', 'fingerprint']
    ordering = ['-last_seen_at']
    readonly_fields = ['error_hash', 'fingerprint', 'occurrence_count', 'first_seen_at', 'last_seen_at', 'created_at']
