from django.contrib import admin
from .models import Supplier, Customer


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'tenant', 'contact_name', 'email', 'phone', 'active']
    list_filter = ['active', 'tenant']
    search_fields = ['code', 'name', 'email', 'phone']
    ordering = ['name']


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'tenant', 'contact_name', 'email', 'phone', 'active']
    list_filter = ['active', 'tenant']
    search_fields = ['code', 'name', 'email', 'phone']
    ordering = ['name']
