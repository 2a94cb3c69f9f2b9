"""
Production — Models

Production batches (stock-bearing: the batch's finished-goods balance is a
ledger entity) with the raw materials they consumed, and material issues
(materials handed out to a department or person).

@file production/models.py
"""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel
from stock.models import QUANTITY_FIELD_OPTIONS, StockHolder

MONEY_FIELD_OPTIONS = {'max_digits': 14, 'decimal_places': 2}


class ProductionBatch(BaseModel, StockHolder):
    """
    One production run of a product.

    `initial_stock` is the quantity produced; sales loading, wastage and
    adjustments move `current_stock` through the ledger.
    """

    class StatusChoices(models.TextChoices):
        COMPLETED = 'COMPLETED', _('Completed')
        CANCELLED = 'CANCELLED', _('Cancelled')

    product = models.ForeignKey(
        'inventory.Product',
        on_delete=models.PROTECT,
        related_name='batches',
        verbose_name=_('product'),
    )
    batch_code = models.CharField(_('batch code'), max_length=32, unique=True)
    production_date = models.DateField(_('production date'), db_index=True)
    expiry_date = models.DateField(_('expiry date'), null=True, blank=True)
    unit_cost = models.DecimalField(
        _('unit cost'), max_digits=14, decimal_places=4,
        default=Decimal('0'), validators=[MinValueValidator(Decimal('0'))],
    )
    selling_price = models.DecimalField(
        _('selling price'), **MONEY_FIELD_OPTIONS,
        null=True, blank=True, validators=[MinValueValidator(Decimal('0'))],
    )
    produced_by = models.CharField(_('produced by'), max_length=255, blank=True, default='')
    status = models.CharField(
        _('status'), max_length=12,
        choices=StatusChoices.choices, default=StatusChoices.COMPLETED,
        db_index=True,
    )
    notes = models.TextField(_('notes'), blank=True, default='')

    class Meta:
        verbose_name = _('production batch')
        verbose_name_plural = _('production batches')
        ordering = ['-production_date', '-created_at']

    def __str__(self):
        return self.batch_code

    @property
    def quantity_produced(self) -> Decimal:
        return self.initial_stock

    @property
    def is_expired(self) -> bool:
        return self.expiry_date is not None and self.expiry_date < timezone.localdate()


class BatchMaterial(models.Model):
    """A raw material line of a production batch."""

    batch = models.ForeignKey(
        ProductionBatch,
        on_delete=models.CASCADE,
        related_name='materials_used',
        verbose_name=_('batch'),
    )
    material = models.ForeignKey(
        'inventory.Material',
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('material'),
    )
    quantity = models.DecimalField(
        _('quantity'), **QUANTITY_FIELD_OPTIONS,
        validators=[MinValueValidator(Decimal('0.001'))],
    )
    cost = models.DecimalField(
        _('cost'), **MONEY_FIELD_OPTIONS,
        default=Decimal('0'), validators=[MinValueValidator(Decimal('0'))],
    )
    supplier = models.CharField(_('supplier'), max_length=255, blank=True, default='')
    movement = models.OneToOneField(
        'stock.StockMovement',
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('consumption movement'),
    )

    class Meta:
        verbose_name = _('batch material')
        verbose_name_plural = _('batch materials')

    def __str__(self):
        return f'{self.material_id} x {self.quantity} ({self.batch_id})'


class MaterialIssue(BaseModel):
    """Materials handed out from the store, e.g. to the kitchen or maintenance."""

    class DepartmentChoices(models.TextChoices):
        PRODUCTION = 'PRODUCTION', _('Production')
        PACKAGING = 'PACKAGING', _('Packaging')
        MAINTENANCE = 'MAINTENANCE', _('Maintenance')
        QUALITY = 'QUALITY', _('Quality control')
        ADMINISTRATION = 'ADMINISTRATION', _('Administration')
        OTHER = 'OTHER', _('Other')

    issue_date = models.DateField(_('issue date'), db_index=True)
    issued_to = models.CharField(_('issued to'), max_length=255)
    purpose = models.CharField(_('purpose'), max_length=255)
    department = models.CharField(
        _('department'), max_length=16,
        choices=DepartmentChoices.choices, db_index=True,
    )
    notes = models.TextField(_('notes'), blank=True, default='')

    class Meta:
        verbose_name = _('material issue')
        verbose_name_plural = _('material issues')
        ordering = ['-issue_date', '-created_at']

    def __str__(self):
        return f'Issue to {self.issued_to} on {self.issue_date}'


class MaterialIssueItem(models.Model):
    issue = models.ForeignKey(
        MaterialIssue,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('issue'),
    )
    material = models.ForeignKey(
        'inventory.Material',
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('material'),
    )
    quantity = models.DecimalField(
        _('quantity'), **QUANTITY_FIELD_OPTIONS,
        validators=[MinValueValidator(Decimal('0.001'))],
    )
    movement = models.OneToOneField(
        'stock.StockMovement',
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('issue movement'),
    )

    class Meta:
        verbose_name = _('material issue item')
        verbose_name_plural = _('material issue items')

    def __str__(self):
        return f'{self.material_id} x {self.quantity}'
