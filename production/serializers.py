"""
Production — Serializers

@file production/serializers.py
"""

from decimal import Decimal

from rest_framework import serializers

from .models import BatchMaterial, MaterialIssue, MaterialIssueItem, ProductionBatch


# ---------------------------------------------------------------------------
# Production batches
# ---------------------------------------------------------------------------

class BatchMaterialSerializer(serializers.ModelSerializer):
    material_name = serializers.CharField(source='material.name', read_only=True)
    material_unit = serializers.CharField(source='material.unit', read_only=True)

    class Meta:
        model = BatchMaterial
        fields = ['id', 'material', 'material_name', 'material_unit', 'quantity', 'cost', 'supplier', 'movement']
        read_only_fields = fields


class ProductionBatchListSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    quantity_produced = serializers.DecimalField(max_digits=14, decimal_places=3, read_only=True)
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = ProductionBatch
        fields = [
            'id', 'batch_code', 'product', 'product_name',
            'production_date', 'expiry_date', 'is_expired',
            'quantity_produced', 'current_stock', 'unit',
            'unit_cost', 'selling_price', 'status',
        ]
        read_only_fields = fields


class ProductionBatchDetailSerializer(ProductionBatchListSerializer):
    materials_used = BatchMaterialSerializer(many=True, read_only=True)

    class Meta(ProductionBatchListSerializer.Meta):
        fields = ProductionBatchListSerializer.Meta.fields + [
            'produced_by', 'notes', 'materials_used', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class BatchMaterialLineSerializer(serializers.Serializer):
    material_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3, min_value=Decimal('0.001'))
    cost = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'), default=Decimal('0'))
    supplier = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class ProductionBatchCreateSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    production_date = serializers.DateField()
    quantity_produced = serializers.DecimalField(max_digits=14, decimal_places=3, min_value=Decimal('0.001'))
    selling_price = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True,
    )
    produced_by = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    materials = BatchMaterialLineSerializer(many=True, allow_empty=False)

    def validate_materials(self, value):
        seen = set()
        for line in value:
            if line['material_id'] in seen:
                raise serializers.ValidationError('Each material can only be listed once per batch.')
            seen.add(line['material_id'])
        return value


# ---------------------------------------------------------------------------
# Material issues
# ---------------------------------------------------------------------------

class MaterialIssueItemSerializer(serializers.ModelSerializer):
    material_name = serializers.CharField(source='material.name', read_only=True)
    material_unit = serializers.CharField(source='material.unit', read_only=True)

    class Meta:
        model = MaterialIssueItem
        fields = ['id', 'material', 'material_name', 'material_unit', 'quantity', 'movement']
        read_only_fields = fields


class MaterialIssueReadSerializer(serializers.ModelSerializer):
    department_display = serializers.CharField(source='get_department_display', read_only=True)
    items = MaterialIssueItemSerializer(many=True, read_only=True)

    class Meta:
        model = MaterialIssue
        fields = [
            'id', 'issue_date', 'issued_to', 'purpose',
            'department', 'department_display', 'notes', 'items', 'created_at',
        ]
        read_only_fields = fields


class IssueItemLineSerializer(serializers.Serializer):
    material_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3, min_value=Decimal('0.001'))


class MaterialIssueCreateSerializer(serializers.Serializer):
    issue_date = serializers.DateField()
    issued_to = serializers.CharField(max_length=255)
    purpose = serializers.CharField(max_length=255)
    department = serializers.ChoiceField(choices=MaterialIssue.DepartmentChoices.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = IssueItemLineSerializer(many=True, allow_empty=False)
