"""
Core — Django Admin Configuration

Read-only AuditLog viewer. Each row links back to the admin page of the
location, item, threshold, movement or notification it describes.

@file core/admin.py
"""

from django.apps import apps
from django.contrib import admin
from django.urls import NoReverseMatch, reverse
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from core.models import AuditLog

# model_name as stored on AuditLog -> app label
AUDITED_MODELS = {
    'Location': 'locations',
    'Item': 'catalog',
    'StockThreshold': 'catalog',
    'StockMovement': 'stock',
    'Notification': 'alerts',
}

ACTION_COLORS = {
    AuditLog.ActionChoices.CREATE: '#22c55e',
    AuditLog.ActionChoices.UPDATE: '#3b82f6',
    AuditLog.ActionChoices.DEACTIVATE: '#f97316',
    AuditLog.ActionChoices.REACTIVATE: '#8b5cf6',
    AuditLog.ActionChoices.SET_PRIMARY: '#eab308',
    AuditLog.ActionChoices.MOVEMENT: '#14b8a6',
    AuditLog.ActionChoices.ACKNOWLEDGE: '#06b6d4',
    AuditLog.ActionChoices.IMPORT: '#6366f1',
}


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = (
        'timestamp', 'action_badge', 'model_name', 'target_link',
        'changed_summary', 'actor',
    )
    list_filter = ('action', 'model_name', 'timestamp')
    search_fields = ('object_id', 'actor__username')
    readonly_fields = (
        'id', 'actor', 'action', 'model_name', 'object_id', 'target_link',
        'changed_fields', 'old_values', 'new_values', 'timestamp',
    )
    date_hierarchy = 'timestamp'
    list_select_related = ('actor',)
    show_full_result_count = False
    list_per_page = 50
    ordering = ('-timestamp',)

    fieldsets = (
        (_('Event'), {
            'fields': ('id', 'action', 'timestamp', 'actor'),
        }),
        (_('Target'), {
            'fields': ('model_name', 'object_id', 'target_link'),
        }),
        (_('Data'), {
            'fields': ('changed_fields', 'old_values', 'new_values'),
            'classes': ('collapse',),
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description=_('Action'))
    def action_badge(self, obj):
        color = ACTION_COLORS.get(obj.action, '#6b7280')
        return format_html(
            '<span style="background:{}; color:#fff; padding:2px 8px; '
            'border-radius:4px; font-size:11px; font-weight:600;">{}</span>',
            color, obj.get_action_display(),
        )

    @admin.display(description=_('Record'))
    def target_link(self, obj):
        app_label = AUDITED_MODELS.get(obj.model_name)
        if app_label is None:
            # Import runs are logged against a batch marker, not a row.
            return obj.object_id
        model = apps.get_model(app_label, obj.model_name)
        try:
            url = reverse(
                f'admin:{app_label}_{model._meta.model_name}_change', args=[obj.object_id],
            )
        except NoReverseMatch:
            return obj.object_id
        return format_html('<a href="{}">{}</a>', url, obj.object_id)

    @admin.display(description=_('Changed'))
    def changed_summary(self, obj):
        return ', '.join(obj.changed_fields) or '-'
