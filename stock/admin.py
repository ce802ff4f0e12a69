"""
Stock — Django Admin Configuration

Read-only lists of StockMovement and StockBalance.
INSERT ONLY — movements are written by the ledger service; balances are
its projection. Neither is editable here.

@file stock/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import StockBalance, StockMovement


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        'created_at', 'movement_type', 'item', 'location', 'counter_location',
        'quantity', 'reference_type', 'reference_id', 'created_by',
    )
    list_filter = ('movement_type', 'location', 'created_at')
    search_fields = ('item__code', 'item__name', 'reference_type', 'reference_id', 'notes')
    readonly_fields = (
        'id', 'item', 'location', 'counter_location', 'movement_type',
        'quantity', 'transfer_group', 'unit_cost',
        'reference_type', 'reference_id', 'notes',
        'created_by', 'created_at',
    )
    list_select_related = ('item', 'location', 'counter_location', 'created_by')
    show_full_result_count = False
    list_per_page = 50
    date_hierarchy = 'created_at'
    ordering = ('-created_at',)

    fieldsets = (
        (_('Movement'), {
            'fields': ('id', 'item', 'location', 'counter_location', 'movement_type', 'quantity', 'transfer_group'),
        }),
        (_('Reference'), {
            'fields': ('reference_type', 'reference_id', 'unit_cost', 'notes'),
        }),
        (_('Audit'), {
            'fields': ('created_by', 'created_at'),
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False  # INSERT ONLY — no updates

    def has_delete_permission(self, request, obj=None):
        return False  # INSERT ONLY — no deletes


@admin.register(StockBalance)
class StockBalanceAdmin(admin.ModelAdmin):
    list_display = ('item', 'location', 'quantity', 'version', 'last_movement_at')
    list_filter = ('location',)
    search_fields = ('item__code', 'item__name', 'location__code')
    readonly_fields = ('item', 'location', 'quantity', 'version', 'last_movement_at')
    list_select_related = ('item', 'location')
    ordering = ('item__code', 'location__code')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
