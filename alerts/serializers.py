"""
Alerts — Serializers

@file alerts/serializers.py
"""

from rest_framework import serializers

from .models import Notification


class NotificationReadSerializer(serializers.ModelSerializer):
    item_code = serializers.CharField(source='item.code', read_only=True)
    item_name = serializers.CharField(source='item.name', read_only=True)
    location_code = serializers.CharField(source='location.code', read_only=True, default=None)
    kind_display = serializers.CharField(source='get_kind_display', read_only=True)
    priority_display = serializers.CharField(source='get_priority_display', read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'item', 'item_code', 'item_name',
            'location', 'location_code',
            'kind', 'kind_display', 'priority', 'priority_display', 'message',
            'is_acknowledged', 'acknowledged_at', 'acknowledged_by',
            'is_resolved', 'resolved_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class NotificationQuerySerializer(serializers.Serializer):
    unresolved_only = serializers.BooleanField(required=False, default=True)
    min_priority = serializers.ChoiceField(choices=Notification.Priority.choices, required=False)
    item = serializers.UUIDField(required=False)
    location = serializers.UUIDField(required=False)
