from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderLine


class PurchaseOrderLineInline(admin.TabularInline):
    model = PurchaseOrderLine
    extra = 0
    fields = ['product', 'qty_ordered', 'qty_received', 'unit_cost']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'supplier', 'location', 'order_date', 'status', 'get_total', 'created_by', 'created_at']
    list_filter = ['status', 'tenant', 'order_date']
    search_fields = ['po_number', 'notes', 'supplier__name']
    ordering = ['-order_date', '-created_at']
    inlines = [PurchaseOrderLineInline]
    readonly_fields = ['created_at', 'updated_at']

    def get_total(self, obj):
        return f"{obj.get_total():.2f}"
    get_total.short_description = 'Total'
