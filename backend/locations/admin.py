from django.contrib import admin
from .models import Location


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'type', 'parent', 'active', 'created_at']
    list_filter = ['type', 'active', 'tenant']
    search_fields = ['name']
    ordering = ['name']
