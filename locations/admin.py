"""
Locations — Django Admin Configuration

@file locations/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import Location


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'primary_badge', 'is_active', 'created_at')
    list_filter = ('is_active', 'is_primary')
    search_fields = ('code', 'name')
    readonly_fields = (
        'id', 'is_primary', 'deactivated_at', 'deactivated_by',
        'created_at', 'updated_at', 'created_by', 'updated_by',
    )
    ordering = ('-is_primary', 'code')

    fieldsets = (
        (_('Identification'), {
            'fields': ('id', 'code', 'name', 'description'),
        }),
        (_('Status'), {
            'fields': ('is_primary', 'is_active', 'deactivated_at', 'deactivated_by'),
        }),
        (_('Audit'), {
            'fields': ('created_at', 'updated_at', 'created_by', 'updated_by'),
            'classes': ('collapse',),
        }),
    )

    @admin.display(description=_('Primary'), ordering='is_primary')
    def primary_badge(self, obj):
        if not obj.is_primary:
            return ''
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 8px;border-radius:4px;">{}</span>',
            '#0d6efd', _('PRIMARY'),
        )

    def has_delete_permission(self, request, obj=None):
        return False  # deactivate instead
