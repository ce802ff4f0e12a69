"""
Catalog — Django Admin Configuration

Admin for Item with expiry colour coding and inline thresholds.

@file catalog/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import Item, StockThreshold


class StockThresholdInline(admin.TabularInline):
    model = StockThreshold
    fk_name = 'item'
    extra = 0
    fields = ('location', 'min_level', 'max_level', 'updated_at')
    readonly_fields = ('updated_at',)
    autocomplete_fields = ('location',)


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = (
        'code', 'name', 'category', 'unit', 'unit_cost',
        'expiry_badge', 'allow_backorder', 'is_active',
    )
    list_filter = ('category', 'is_active', 'allow_backorder')
    search_fields = ('code', 'name', 'supplier_name', 'batch_number')
    readonly_fields = (
        'id', 'is_active', 'deactivated_at', 'deactivated_by',
        'created_at', 'updated_at', 'created_by', 'updated_by',
    )
    list_per_page = 30
    ordering = ('code',)
    inlines = [StockThresholdInline]

    fieldsets = (
        (_('Identification'), {
            'fields': ('id', 'code', 'name', 'description', 'category', 'unit'),
        }),
        (_('Supply'), {
            'fields': ('unit_cost', 'supplier_name', 'supplier_code', 'batch_number', 'expiry_date'),
        }),
        (_('Stock policy'), {
            'fields': ('allow_backorder',),
        }),
        (_('Status'), {
            'fields': ('is_active', 'deactivated_at', 'deactivated_by'),
        }),
        (_('Audit'), {
            'fields': ('created_at', 'updated_at', 'created_by', 'updated_by'),
            'classes': ('collapse',),
        }),
    )

    @admin.display(description=_('Expiry'), ordering='expiry_date')
    def expiry_badge(self, obj):
        days = obj.days_to_expiry
        if days is None:
            return ''
        if days < 0:
            color = '#dc3545'
        elif days <= 7:
            color = '#fd7e14'
        else:
            color = '#198754'
        return format_html(
            '<span style="color:{};font-weight:bold;">{}</span>',
            color, obj.expiry_date.isoformat(),
        )

    def has_delete_permission(self, request, obj=None):
        return False  # deactivate instead
