from django.contrib import admin
from .models import (
    InventoryBalance, StockMovement, Adjustment, AdjustmentLine,
    Transfer, TransferLine, CycleCount, CycleCountLine
)


@admin.register(InventoryBalance)
class InventoryBalanceAdmin(admin.ModelAdmin):
    list_display = ['product', 'location', 'lot_number', 'expiry_date', 'qty_on_hand', 'avg_cost', 'updated_at']
    list_filter = ['tenant', 'location', 'expiry_date']
    search_fields = ['product__name', 'product__sku', 'lot_number']
    ordering = ['product', 'location']


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['product', 'location', 'qty', 'movement_type', 'reference_type', 'reference_id', 'unit_cost', 'created_by', 'created_at']
    list_filter = ['movement_type', 'reference_type', 'tenant', 'created_at']
    search_fields = ['product__name', 'product__sku', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['created_at']

    # The ledger is append-only
    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class AdjustmentLineInline(admin.TabularInline):
    model = AdjustmentLine
    extra = 0


@admin.register(Adjustment)
class AdjustmentAdmin(admin.ModelAdmin):
    list_display = ['adjustment_number', 'location', 'reason', 'status', 'approved_by', 'created_by', 'created_at']
    list_filter = ['status', 'reason', 'tenant', 'created_at']
    search_fields = ['adjustment_number', 'notes']
    ordering = ['-created_at']
    inlines = [AdjustmentLineInline]
    readonly_fields = ['created_at', 'updated_at']


class TransferLineInline(admin.TabularInline):
    model = TransferLine
    extra = 0


@admin.register(Transfer)
class TransferAdmin(admin.ModelAdmin):
    list_display = ['transfer_number', 'from_location', 'to_location', 'status', 'sent_at', 'received_at', 'created_at']
    list_filter = ['status', 'tenant', 'created_at']
    search_fields = ['transfer_number', 'notes']
    ordering = ['-created_at']
    inlines = [TransferLineInline]
    readonly_fields = ['created_at', 'updated_at']


class CycleCountLineInline(admin.TabularInline):
    model = CycleCountLine
    extra = 0


@admin.register(CycleCount)
class CycleCountAdmin(admin.ModelAdmin):
    list_display = ['count_number', 'location', 'count_date', 'status', 'posted_at', 'created_at']
    list_filter = ['status', 'tenant', 'count_date']
    search_fields = ['count_number', 'notes']
    ordering = ['-created_at']
    inlines = [CycleCountLineInline]
    readonly_fields = ['created_at', 'updated_at']
