"""
Alerts — Django Admin Configuration

Notifications are opened and resolved by the alerting engine only; the
admin can browse them but not add or delete.

@file alerts/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import Notification

PRIORITY_COLORS = {
    'critical': '#dc3545',
    'high': '#fd7e14',
    'medium': '#ffc107',
    'low': '#6c757d',
}


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = (
        'created_at', 'priority_badge', 'kind', 'item', 'location',
        'is_acknowledged', 'is_resolved',
    )
    list_filter = ('kind', 'priority', 'is_acknowledged', 'is_resolved')
    search_fields = ('item__code', 'item__name', 'message')
    readonly_fields = (
        'id', 'item', 'location', 'kind', 'priority', 'message',
        'is_acknowledged', 'acknowledged_at', 'acknowledged_by',
        'is_resolved', 'resolved_at', 'created_at', 'updated_at',
    )
    list_select_related = ('item', 'location')
    ordering = ('-priority_rank', '-created_at')

    @admin.display(description=_('Priority'), ordering='priority_rank')
    def priority_badge(self, obj):
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 8px;border-radius:4px;">{}</span>',
            PRIORITY_COLORS.get(obj.priority, '#6c757d'),
            obj.get_priority_display(),
        )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
