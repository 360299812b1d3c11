from django.contrib import admin
from .models import Shipment, ShipmentLine


class ShipmentLineInline(admin.TabularInline):
    model = ShipmentLine
    extra = 0
    fields = ['product', 'qty', 'lot_number', 'expiry_date', 'unit_cost']


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = ['shipment_number', 'location', 'customer', 'customer_name', 'ship_date', 'status', 'created_at']
    list_filter = ['status', 'tenant', 'ship_date']
    search_fields = ['shipment_number', 'customer_name', 'customer__name', 'notes']
    ordering = ['-created_at']
    inlines = [ShipmentLineInline]
    readonly_fields = ['created_at', 'updated_at']
