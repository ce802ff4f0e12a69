"""
Locations — Serializers

@file locations/serializers.py
"""

from rest_framework import serializers

from .models import Location


class LocationReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Location
        fields = [
            'id', 'code', 'name', 'description',
            'is_primary', 'is_active', 'deactivated_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class LocationWriteSerializer(serializers.ModelSerializer):
    is_primary = serializers.BooleanField(required=False, default=False)

    class Meta:
        model = Location
        fields = ['code', 'name', 'description', 'is_primary']

    def validate_code(self, value):
        value = value.strip().upper()
        if not value:
            raise serializers.ValidationError('Code cannot be blank.')
        return value


class LocationUpdateSerializer(serializers.ModelSerializer):
    """Code is immutable once ledger rows may reference it."""

    class Meta:
        model = Location
        fields = ['name', 'description']
