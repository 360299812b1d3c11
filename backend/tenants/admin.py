from django.contrib import admin
from .models import Tenant, UserInvitation


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['name', 'max_users', 'created_at']
    search_fields = ['name']
    ordering = ['name']


@admin.register(UserInvitation)
class UserInvitationAdmin(admin.ModelAdmin):
    list_display = ['email', 'tenant', 'role', 'invited_by_name', 'expires_at', 'accepted_at', 'created_at']
    list_filter = ['role', 'tenant']
    search_fields = ['email', 'tenant__name']
    readonly_fields = ['token', 'created_at']
