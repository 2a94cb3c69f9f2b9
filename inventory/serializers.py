"""
Inventory — Serializers

Read and write serializers for Material and Product. `current_stock` is
exposed read-only; `initial_stock` is accepted on creation only.

@file inventory/serializers.py
"""

from rest_framework import serializers

from .models import Material, Product


# ---------------------------------------------------------------------------
# Material
# ---------------------------------------------------------------------------

class MaterialReadSerializer(serializers.ModelSerializer):
    category_display = serializers.CharField(source='get_category_display', read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Material
        fields = [
            'id', 'name', 'code', 'category', 'category_display',
            'unit', 'initial_stock', 'current_stock', 'reorder_level',
            'is_low_stock', 'last_supplier', 'description',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class MaterialCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Material
        fields = [
            'name', 'code', 'category', 'unit',
            'initial_stock', 'reorder_level', 'description',
        ]

    def validate_code(self, value):
        return value.upper().strip()


class MaterialUpdateSerializer(serializers.ModelSerializer):
    """Stock fields are deliberately absent: the ledger owns them."""

    class Meta:
        model = Material
        fields = ['name', 'code', 'category', 'unit', 'reorder_level', 'description']

    def validate_code(self, value):
        return value.upper().strip()


# ---------------------------------------------------------------------------
# Product
# ---------------------------------------------------------------------------

class ProductReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            'id', 'name', 'code', 'unit', 'shelf_life_days',
            'selling_price', 'description', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ProductWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['name', 'code', 'unit', 'shelf_life_days', 'selling_price', 'description']

    def validate_code(self, value):
        return value.upper().strip()
