from django.contrib import admin
from .models import Return, ReturnLine


class ReturnLineInline(admin.TabularInline):
    model = ReturnLine
    extra = 0
    fields = ['product', 'qty', 'lot_number', 'expiry_date', 'unit_cost']


@admin.register(Return)
class ReturnAdmin(admin.ModelAdmin):
    list_display = ['return_number', 'return_type', 'location', 'partner_name', 'status', 'processed_at', 'created_at']
    list_filter = ['return_type', 'status', 'tenant']
    search_fields = ['return_number', 'partner_name', 'reason', 'notes']
    ordering = ['-created_at']
    inlines = [ReturnLineInline]
    readonly_fields = ['created_at', 'updated_at']
