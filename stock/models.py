"""
Stock — Models

Ledger storage. Every stock-bearing entity (raw material, production
batch) inherits StockHolder: a cached `current_stock` balance plus a
`version` counter used for optimistic conflict detection. StockMovement is
the log the balance is derived from:

    current_stock == initial_stock + SUM(effect of live movements)

Only stock.services.LedgerService writes `current_stock`.

@file stock/models.py
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

QUANTITY_FIELD_OPTIONS = {'max_digits': 14, 'decimal_places': 3}
LEDGER_MANAGED_FIELDS = frozenset({'initial_stock', 'current_stock', 'version'})


class StockHolder(models.Model):
    """
    Abstract balance carrier.

    `initial_stock` is fixed at creation; `current_stock` moves only through
    ledger transactions, each of which bumps `version`. Ordinary saves of an
    existing row skip those fields, so a stale instance cannot overwrite a
    balance the ledger has moved since it was loaded.
    """

    unit = models.CharField(_('unit'), max_length=20, default='kg')
    initial_stock = models.DecimalField(
        _('initial stock'), **QUANTITY_FIELD_OPTIONS,
        default=Decimal('0'), validators=[MinValueValidator(Decimal('0'))],
    )
    current_stock = models.DecimalField(
        _('current stock'), **QUANTITY_FIELD_OPTIONS,
        default=Decimal('0'), validators=[MinValueValidator(Decimal('0'))],
    )
    reorder_level = models.DecimalField(
        _('reorder level'), **QUANTITY_FIELD_OPTIONS,
        null=True, blank=True, validators=[MinValueValidator(Decimal('0'))],
    )
    version = models.PositiveIntegerField(_('version'), default=0, editable=False)

    class Meta:
        abstract = True

    @property
    def is_low_stock(self) -> bool:
        if self.reorder_level is None:
            return False
        return self.current_stock <= self.reorder_level

    def save(self, *args, **kwargs):
        if self._state.adding:
            self.current_stock = self.initial_stock
        else:
            update_fields = kwargs.get('update_fields')
            if update_fields is None:
                kwargs['update_fields'] = [
                    f.name for f in self._meta.concrete_fields
                    if not f.primary_key and f.name not in LEDGER_MANAGED_FIELDS
                ]
            elif LEDGER_MANAGED_FIELDS.intersection(update_fields):
                raise ValueError('Stock fields are written by the stock ledger only.')
        super().save(*args, **kwargs)


class StockMovement(models.Model):
    """
    A single stock-affecting event owned by one entity.

    entity_type + entity_id identify the owner (material or production
    batch); the FK is resolved in the application layer. `direction` is
    set iff movement_type is ADJUSTMENT.
    """

    class EntityType(models.TextChoices):
        MATERIAL = 'MATERIAL', _('Raw material')
        PRODUCTION_BATCH = 'PRODUCTION_BATCH', _('Production batch')

    class MovementType(models.TextChoices):
        PURCHASE = 'PURCHASE', _('Purchase')
        CONSUMED = 'CONSUMED', _('Consumed')
        ADJUSTMENT = 'ADJUSTMENT', _('Adjustment')
        WASTAGE = 'WASTAGE', _('Wastage')

    class Direction(models.TextChoices):
        INCREASE = 'INCREASE', _('Increase')
        DECREASE = 'DECREASE', _('Decrease')

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False,
    )
    entity_type = models.CharField(
        _('entity type'), max_length=20,
        choices=EntityType.choices, db_index=True,
    )
    entity_id = models.UUIDField(
        _('entity ID'),
        help_text=_('UUID of material or production batch; FK resolved in application layer'),
        db_index=True,
    )
    movement_type = models.CharField(
        _('movement type'), max_length=16,
        choices=MovementType.choices, db_index=True,
    )
    direction = models.CharField(
        _('direction'), max_length=8,
        choices=Direction.choices, blank=True, default='',
    )
    quantity = models.DecimalField(
        _('quantity'), **QUANTITY_FIELD_OPTIONS,
        validators=[MinValueValidator(Decimal('0.001'))],
    )
    occurred_on = models.DateField(_('date'))
    reference = models.CharField(
        _('reference'), max_length=255, blank=True, default='',
        help_text=_('Free text: supplier, batch, recipient'),
    )
    notes = models.TextField(_('notes'), blank=True, default='')
    reference_id = models.UUIDField(
        _('reference ID'), null=True, blank=True,
        help_text=_('Source record: ProductionBatch, MaterialIssue'),
    )
    reference_type = models.CharField(
        _('reference type'), max_length=100, blank=True, default='',
        help_text=_('Model name of source record'),
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('created by'),
    )
    created_at = models.DateTimeField(_('created at'), default=timezone.now, db_index=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('updated by'),
    )
    updated_at = models.DateTimeField(_('updated at'), null=True, blank=True)

    class Meta:
        verbose_name = _('stock movement')
        verbose_name_plural = _('stock movements')
        ordering = ['-occurred_on', '-created_at']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id', 'occurred_on'], name='stock_entity_date_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='stock_reference_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='stock_movement_quantity_positive',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(movement_type='ADJUSTMENT', direction__in=['INCREASE', 'DECREASE'])
                    | (~models.Q(movement_type='ADJUSTMENT') & models.Q(direction=''))
                ),
                name='stock_movement_direction_iff_adjustment',
            ),
        ]

    def __str__(self):
        label = self.movement_type
        if self.direction:
            label = f'{label}/{self.direction}'
        return f'{label} {self.quantity} entity={self.entity_type}:{self.entity_id}'
