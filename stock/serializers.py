"""
Stock — Serializers

Movement input is only shape-checked here; the business validation
(type/direction pairing, positive quantity, no future dates) belongs to
LedgerService so that API and internal callers get the same
INVALID_MOVEMENT errors.

@file stock/serializers.py
"""

from rest_framework import serializers

from .effects import effect_of
from .models import StockMovement


class StockMovementReadSerializer(serializers.ModelSerializer):
    movement_type_display = serializers.CharField(source='get_movement_type_display', read_only=True)
    effect = serializers.SerializerMethodField()

    class Meta:
        model = StockMovement
        fields = [
            'id', 'entity_type', 'entity_id',
            'movement_type', 'movement_type_display', 'direction',
            'quantity', 'effect', 'occurred_on',
            'reference', 'notes', 'reference_type', 'reference_id',
            'created_by', 'created_at', 'updated_by', 'updated_at',
        ]
        read_only_fields = fields

    def get_effect(self, obj):
        return effect_of(obj)


class StockMovementCreateSerializer(serializers.Serializer):
    entity_type = serializers.CharField(max_length=20)
    entity_id = serializers.UUIDField()
    movement_type = serializers.CharField(max_length=16)
    direction = serializers.CharField(max_length=8, required=False, allow_blank=True, default='')
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    occurred_on = serializers.DateField(required=False, allow_null=True, default=None)
    reference = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class StockMovementUpdateSerializer(serializers.Serializer):
    """Editable fields of a stored movement; the owning entity is fixed."""

    movement_type = serializers.CharField(max_length=16)
    direction = serializers.CharField(max_length=8, required=False, allow_blank=True)
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    occurred_on = serializers.DateField()
    reference = serializers.CharField(max_length=255, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class StockBalanceSerializer(serializers.Serializer):
    entity_type = serializers.CharField()
    entity_id = serializers.UUIDField()
    label = serializers.CharField()
    unit = serializers.CharField()
    current_stock = serializers.DecimalField(max_digits=14, decimal_places=3)


class StockReconciliationSerializer(serializers.Serializer):
    entity_type = serializers.CharField()
    entity_id = serializers.UUIDField()
    label = serializers.CharField(required=False)
    current_stock = serializers.DecimalField(max_digits=14, decimal_places=3)
    expected_stock = serializers.DecimalField(max_digits=14, decimal_places=3)
    drift = serializers.DecimalField(max_digits=14, decimal_places=3)
