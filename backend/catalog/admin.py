from django.contrib import admin
from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'parent', 'created_at']
    list_filter = ['tenant']
    search_fields = ['name']
    ordering = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['sku', 'name', 'tenant', 'category', 'base_uom', 'current_cost', 'active']
    list_filter = ['active', 'base_uom', 'track_expiry', 'track_lot', 'tenant']
    search_fields = ['sku', 'name', 'barcode']
    ordering = ['name']
