"""
Inventory — Models

Master data for what the plant buys and what it makes: raw materials
(stock-bearing, balance maintained by the stock ledger) and product
definitions (recipes' output; stock is carried per production batch).

@file inventory/models.py
"""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import ArchivableModel
from stock.models import StockHolder


class Material(ArchivableModel, StockHolder):
    """
    A raw or packaging material held in the store.

    `current_stock` is read-only outside the stock ledger; purchases record
    their supplier in `last_supplier`.
    """

    class CategoryChoices(models.TextChoices):
        RAW = 'RAW', _('Raw material')
        PACKAGING = 'PACKAGING', _('Packaging')
        INGREDIENT = 'INGREDIENT', _('Ingredient')
        CONSUMABLE = 'CONSUMABLE', _('Consumable')
        OTHER = 'OTHER', _('Other')

    name = models.CharField(_('name'), max_length=255)
    code = models.CharField(
        _('code'), max_length=40, unique=True,
        help_text=_('Internal material code (e.g. MAT-0001)'),
    )
    category = models.CharField(
        _('category'), max_length=12,
        choices=CategoryChoices.choices, default=CategoryChoices.RAW,
        db_index=True,
    )
    last_supplier = models.CharField(_('last supplier'), max_length=255, blank=True, default='')
    description = models.TextField(_('description'), blank=True, default='')

    class Meta:
        verbose_name = _('material')
        verbose_name_plural = _('materials')
        ordering = ['name']
        indexes = [
            models.Index(fields=['category', 'is_deleted'], name='material_category_idx'),
        ]

    def __str__(self):
        return self.name


class Product(ArchivableModel):
    """A finished good the plant produces in batches."""

    name = models.CharField(_('name'), max_length=255)
    code = models.CharField(_('code'), max_length=40, unique=True)
    unit = models.CharField(_('unit'), max_length=20, default='pcs')
    shelf_life_days = models.PositiveIntegerField(
        _('shelf life (days)'), null=True, blank=True,
        help_text=_('Used to compute batch expiry dates'),
    )
    selling_price = models.DecimalField(
        _('selling price'), max_digits=14, decimal_places=2,
        null=True, blank=True, validators=[MinValueValidator(Decimal('0'))],
    )
    description = models.TextField(_('description'), blank=True, default='')

    class Meta:
        verbose_name = _('product')
        verbose_name_plural = _('products')
        ordering = ['name']

    def __str__(self):
        return self.name
