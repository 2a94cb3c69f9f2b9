"""
Inventory — Service Layer

Create/update/archive for materials and products. Stock fields are not
editable here: a material's opening balance is fixed at creation and every
later change goes through stock.services.LedgerService.

@file inventory/services.py
"""

import logging

from django.db import transaction
from django.db.models import F

from core.exceptions import BusinessRuleViolation, ResourceNotFoundError
from stock.models import LEDGER_MANAGED_FIELDS

from .models import Material, Product

logger = logging.getLogger('prodtrack')


def _reject_stock_fields(fields: dict) -> None:
    touched = LEDGER_MANAGED_FIELDS.intersection(fields)
    if touched:
        raise BusinessRuleViolation(
            detail=f'Stock fields are maintained by stock movements: {", ".join(sorted(touched))}.',
        )


class MaterialService:
    """Material master data."""

    @staticmethod
    @transaction.atomic
    def create_material(*, actor=None, **fields) -> Material:
        fields.pop('current_stock', None)
        material = Material(**fields)
        material.full_clean()
        material.created_by = actor
        material._current_user = actor
        material.save()
        logger.info('Material %s created with opening stock %s %s.', material.pk, material.initial_stock, material.unit)
        return material

    @staticmethod
    @transaction.atomic
    def update_material(*, material_id, actor=None, **fields) -> Material:
        _reject_stock_fields(fields)
        try:
            material = Material.objects.select_for_update().get(pk=material_id, is_deleted=False)
        except Material.DoesNotExist:
            raise ResourceNotFoundError()

        for field, value in fields.items():
            if hasattr(material, field) and field not in ('id', 'pk'):
                setattr(material, field, value)

        material.updated_by = actor
        material._current_user = actor
        material.full_clean()
        material.save()
        return material

    @staticmethod
    @transaction.atomic
    def archive_material(*, material_id, actor=None) -> Material:
        try:
            material = Material.objects.get(pk=material_id, is_deleted=False)
        except Material.DoesNotExist:
            raise ResourceNotFoundError()
        material.soft_delete(user=actor)
        logger.info('Material %s archived by %s.', material.pk, actor)
        return material

    @staticmethod
    def low_stock():
        """Active materials at or below their reorder level."""
        return Material.objects.filter(
            is_deleted=False,
            reorder_level__isnull=False,
            current_stock__lte=F('reorder_level'),
        )


class ProductService:
    """Product definitions."""

    @staticmethod
    @transaction.atomic
    def create_product(*, actor=None, **fields) -> Product:
        product = Product(**fields)
        product.full_clean()
        product.created_by = actor
        product._current_user = actor
        product.save()
        return product

    @staticmethod
    @transaction.atomic
    def update_product(*, product_id, actor=None, **fields) -> Product:
        try:
            product = Product.objects.select_for_update().get(pk=product_id, is_deleted=False)
        except Product.DoesNotExist:
            raise ResourceNotFoundError()

        for field, value in fields.items():
            if hasattr(product, field) and field not in ('id', 'pk'):
                setattr(product, field, value)

        product.updated_by = actor
        product._current_user = actor
        product.full_clean()
        product.save()
        return product
