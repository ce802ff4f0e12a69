"""
Stock — Serializers

@file stock/serializers.py
"""

from rest_framework import serializers

from .models import StockMovement

RECORDABLE_TYPES = [
    choice for choice in StockMovement.MovementType.choices
    if choice[0] != StockMovement.MovementType.TRANSFER
]


class StockMovementReadSerializer(serializers.ModelSerializer):
    item_code = serializers.CharField(source='item.code', read_only=True)
    location_code = serializers.CharField(source='location.code', read_only=True)
    counter_location_code = serializers.CharField(
        source='counter_location.code', read_only=True, default=None,
    )
    movement_type_display = serializers.CharField(source='get_movement_type_display', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'item', 'item_code', 'location', 'location_code',
            'counter_location', 'counter_location_code',
            'movement_type', 'movement_type_display', 'quantity',
            'transfer_group', 'unit_cost',
            'reference_type', 'reference_id', 'notes',
            'created_by', 'created_by_username', 'created_at',
        ]
        read_only_fields = fields


class StockMovementWriteSerializer(serializers.Serializer):
    """quantity is signed: receipts positive, issues and consumptions negative."""

    item = serializers.UUIDField()
    location = serializers.UUIDField()
    movement_type = serializers.ChoiceField(choices=RECORDABLE_TYPES)
    quantity = serializers.DecimalField(max_digits=18, decimal_places=3)
    unit_cost = serializers.DecimalField(
        max_digits=15, decimal_places=2, min_value=0, required=False, allow_null=True,
    )
    reference_type = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    reference_id = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class StockTransferSerializer(serializers.Serializer):
    item = serializers.UUIDField()
    from_location = serializers.UUIDField()
    to_location = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=18, decimal_places=3)
    reference_type = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    reference_id = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class MovementQuerySerializer(serializers.Serializer):
    item = serializers.UUIDField()
    location = serializers.UUIDField(required=False)
    since = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(required=False, min_value=0)


class BalanceQuerySerializer(serializers.Serializer):
    item = serializers.UUIDField()
    location = serializers.UUIDField(required=False)


class ReconcileQuerySerializer(serializers.Serializer):
    item = serializers.UUIDField(required=False)
    location = serializers.UUIDField(required=False)

    def validate(self, attrs):
        if bool(attrs.get('item')) != bool(attrs.get('location')):
            raise serializers.ValidationError('Pass both item and location, or neither for a full sweep.')
        return attrs


class RestockQuerySerializer(serializers.Serializer):
    location = serializers.UUIDField(required=False)


class ReconcileResultSerializer(serializers.Serializer):
    item_id = serializers.UUIDField()
    location_id = serializers.UUIDField()
    projected = serializers.DecimalField(max_digits=18, decimal_places=3)
    replayed = serializers.DecimalField(max_digits=18, decimal_places=3)
    matches = serializers.BooleanField()


class RestockSuggestionSerializer(serializers.Serializer):
    item_id = serializers.UUIDField()
    item_code = serializers.CharField()
    item_name = serializers.CharField()
    unit = serializers.CharField()
    location_id = serializers.UUIDField()
    location_code = serializers.CharField()
    current = serializers.DecimalField(max_digits=18, decimal_places=3)
    min_level = serializers.DecimalField(max_digits=18, decimal_places=3)
    max_level = serializers.DecimalField(max_digits=18, decimal_places=3, allow_null=True)
    suggested_quantity = serializers.DecimalField(max_digits=18, decimal_places=3)
    estimated_cost = serializers.DecimalField(max_digits=18, decimal_places=2, allow_null=True)
