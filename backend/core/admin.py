from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, AuditLog, DocumentSequence


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'name', 'tenant', 'role', 'is_active', 'is_platform_admin', 'date_joined']
    list_filter = ['role', 'is_active', 'is_platform_admin', 'date_joined']
    search_fields = ['email', 'name', 'tenant__name']
    ordering = ['email']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Tenant', {'fields': ('tenant', 'name', 'role', 'is_platform_admin')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Tenant', {'fields': ('email', 'tenant', 'name', 'role')}),
    )


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'prefix', 'last_value']
    list_filter = ['prefix']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'user_email', 'action', 'resource_type', 'resource_name', 'ip_address', 'created_at']
    list_filter = ['action', 'resource_type', 'created_at']
    search_fields = ['user_email', 'resource_type', 'resource_id', 'resource_name']
    ordering = ['-created_at']
    readonly_fields = ['tenant', 'user', 'user_name', 'user_email', 'action', 'resource_type', 'resource_id',
                       'resource_name', 'old_values', 'new_values', 'changes', 'notes', 'ip_address',
                       'user_agent', 'created_at']
