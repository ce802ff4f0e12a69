"""
Catalog — Serializers

Read and write serializers for Item and StockThreshold, plus the upload
serializer for catalog imports.

@file catalog/serializers.py
"""

from django.conf import settings
from django.utils import timezone
from rest_framework import serializers

from alerts.rules import classify_expiry

from stock.services import BalanceService

from .models import Item, StockThreshold


# ---------------------------------------------------------------------------
# Item
# ---------------------------------------------------------------------------

class ItemReadSerializer(serializers.ModelSerializer):
    category_display = serializers.CharField(source='get_category_display', read_only=True)
    days_to_expiry = serializers.IntegerField(read_only=True)
    expiry_status = serializers.SerializerMethodField()
    total_stock = serializers.SerializerMethodField()

    class Meta:
        model = Item
        fields = [
            'id', 'code', 'name', 'description',
            'category', 'category_display', 'unit', 'unit_cost',
            'supplier_name', 'supplier_code',
            'expiry_date', 'days_to_expiry', 'expiry_status', 'batch_number',
            'allow_backorder', 'is_active', 'total_stock',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_total_stock(self, obj):
        return BalanceService.get_total(obj.pk)

    def get_expiry_status(self, obj):
        return classify_expiry(
            obj.expiry_date,
            timezone.localdate(),
            lookahead_days=settings.INVENTORY_EXPIRY_LOOKAHEAD_DAYS,
            critical_days=settings.INVENTORY_EXPIRY_CRITICAL_DAYS,
        )


class ItemWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Item
        fields = [
            'code', 'name', 'description', 'category', 'unit', 'unit_cost',
            'supplier_name', 'supplier_code', 'expiry_date', 'batch_number',
            'allow_backorder',
        ]

    def validate_code(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Code cannot be blank.')
        return value


class ItemUpdateSerializer(ItemWriteSerializer):
    """Code is fixed once created."""

    class Meta(ItemWriteSerializer.Meta):
        fields = [f for f in ItemWriteSerializer.Meta.fields if f != 'code']


# ---------------------------------------------------------------------------
# StockThreshold
# ---------------------------------------------------------------------------

class StockThresholdReadSerializer(serializers.ModelSerializer):
    location_code = serializers.CharField(source='location.code', read_only=True)

    class Meta:
        model = StockThreshold
        fields = [
            'id', 'item', 'location', 'location_code',
            'min_level', 'max_level', 'updated_at',
        ]
        read_only_fields = fields


class StockThresholdWriteSerializer(serializers.Serializer):
    location = serializers.UUIDField()
    min_level = serializers.DecimalField(max_digits=18, decimal_places=3, min_value=0)
    max_level = serializers.DecimalField(
        max_digits=18, decimal_places=3, min_value=0, required=False, allow_null=True,
    )

    def validate(self, attrs):
        max_level = attrs.get('max_level')
        if max_level is not None and attrs['min_level'] > max_level:
            raise serializers.ValidationError({
                'max_level': 'Maximum level must be greater than or equal to the minimum level.',
            })
        return attrs


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

class CatalogImportSerializer(serializers.Serializer):
    file = serializers.FileField()

    def validate_file(self, value):
        name = value.name.lower()
        if not (name.endswith('.csv') or name.endswith('.xlsx')):
            raise serializers.ValidationError('Upload a .csv or .xlsx file.')
        return value
