"""
Stock — Balance & Movement Stores

Transaction-scoped access to the two tables a ledger operation touches.
Neither store commits: every call takes the LedgerTransaction handle of the
attempt in progress, and the coordinator (stock.services) owns the
surrounding `transaction.atomic()` block.

Conflict detection is optimistic. `BalanceStore.read_for_update` records the
row version in the handle; `BalanceStore.write` is a compare-and-set on that
version and raises BalanceVersionMismatch when another writer got there
first, which makes the coordinator roll back and retry the attempt.

@file stock/stores.py
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from decimal import Decimal

from django.apps import apps
from django.db.models import F
from django.utils import timezone

from core.constants import STOCK_QUANTUM
from core.exceptions import EntityNotFound, MovementNotFound

from .models import StockMovement

HOLDER_MODELS = {
    StockMovement.EntityType.MATERIAL.value: 'inventory.Material',
    StockMovement.EntityType.PRODUCTION_BATCH.value: 'production.ProductionBatch',
}

_active_transaction: ContextVar['LedgerTransaction | None'] = ContextVar(
    'stock_ledger_transaction', default=None,
)


class BalanceVersionMismatch(Exception):
    """A concurrent writer changed the balance between our read and write."""

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f'Balance of {entity_type}:{entity_id} changed concurrently.')


@dataclass
class BalanceSnapshot:
    entity_type: str
    entity_id: uuid.UUID
    stock: Decimal
    version: int
    unit: str
    label: str
    model_name: str


@dataclass
class LedgerTransaction:
    """Handle for one attempt of a ledger unit."""

    attempt: int = 1
    balances: dict = field(default_factory=dict)
    closed: bool = False


def current_transaction() -> LedgerTransaction | None:
    return _active_transaction.get()


def activate(unit: LedgerTransaction):
    return _active_transaction.set(unit)


def deactivate(token) -> None:
    _active_transaction.reset(token)


def _require_open(unit: LedgerTransaction | None) -> None:
    if unit is None or unit.closed:
        raise RuntimeError('Stock ledger stores must be used inside an open ledger transaction.')


def holder_model(entity_type: str):
    """Model class of the entity that owns movements of `entity_type`."""
    try:
        label = HOLDER_MODELS[entity_type]
    except KeyError:
        raise EntityNotFound(detail=f'Unknown entity type: {entity_type}.')
    return apps.get_model(label)


def normalize_entity_id(entity_id) -> uuid.UUID:
    if isinstance(entity_id, uuid.UUID):
        return entity_id
    try:
        return uuid.UUID(str(entity_id))
    except ValueError:
        raise EntityNotFound(detail=f'Stock entity not found: {entity_id}.')


def quantize_stock(value: Decimal) -> Decimal:
    return value.quantize(STOCK_QUANTUM)


class BalanceStore:
    """The `current_stock` field of every StockHolder."""

    @staticmethod
    def load(entity_type: str, entity_id):
        """Plain read of the holder row, outside any ledger transaction."""
        model = holder_model(entity_type)
        try:
            holder = model.objects.get(pk=normalize_entity_id(entity_id))
        except model.DoesNotExist:
            holder = None
        if holder is None or getattr(holder, 'is_deleted', False):
            raise EntityNotFound(detail=f'{model._meta.verbose_name.capitalize()} not found: {entity_id}.')
        return holder

    @staticmethod
    def read_for_update(unit: LedgerTransaction, entity_type: str, entity_id) -> BalanceSnapshot:
        """
        Current balance of the entity, registered as a read dependency of
        `unit`. Repeated reads within one attempt return the same snapshot,
        which already reflects this attempt's own writes.
        """
        _require_open(unit)
        entity_id = normalize_entity_id(entity_id)
        key = (entity_type, entity_id)
        if key in unit.balances:
            return unit.balances[key]

        holder = BalanceStore.load(entity_type, entity_id)
        snapshot = BalanceSnapshot(
            entity_type=entity_type,
            entity_id=entity_id,
            stock=holder.current_stock,
            version=holder.version,
            unit=holder.unit,
            label=str(holder),
            model_name=holder._meta.object_name,
        )
        unit.balances[key] = snapshot
        return snapshot

    @staticmethod
    def write(unit: LedgerTransaction, snapshot: BalanceSnapshot, new_stock: Decimal) -> None:
        """Compare-and-set on the version captured by read_for_update."""
        _require_open(unit)
        if new_stock < 0:
            raise ValueError(f'Refusing to store negative stock {new_stock} for {snapshot.label}.')
        new_stock = quantize_stock(new_stock)
        model = holder_model(snapshot.entity_type)
        updated = model.objects.filter(
            pk=snapshot.entity_id, version=snapshot.version,
        ).update(
            current_stock=new_stock,
            version=F('version') + 1,
            updated_at=timezone.now(),
        )
        if updated != 1:
            raise BalanceVersionMismatch(snapshot.entity_type, snapshot.entity_id)
        snapshot.stock = new_stock
        snapshot.version += 1


class MovementStore:
    """StockMovement rows, always addressed through their owning entity."""

    @staticmethod
    def create(unit: LedgerTransaction, *, entity_type: str, entity_id, **fields) -> StockMovement:
        _require_open(unit)
        movement = StockMovement(
            entity_type=entity_type,
            entity_id=normalize_entity_id(entity_id),
            **fields,
        )
        movement.save(force_insert=True)
        return movement

    @staticmethod
    def get(unit: LedgerTransaction, *, entity_type: str, entity_id, movement_id) -> StockMovement:
        _require_open(unit)
        try:
            movement_id = uuid.UUID(str(movement_id))
        except ValueError:
            raise MovementNotFound(detail=f'Stock movement not found: {movement_id}.')
        try:
            return StockMovement.objects.get(
                pk=movement_id,
                entity_type=entity_type,
                entity_id=normalize_entity_id(entity_id),
            )
        except StockMovement.DoesNotExist:
            raise MovementNotFound(detail=f'Stock movement not found: {movement_id}.')

    @staticmethod
    def replace(unit: LedgerTransaction, movement: StockMovement, **fields) -> StockMovement:
        _require_open(unit)
        for name, value in fields.items():
            setattr(movement, name, value)
        movement.save(update_fields=list(fields))
        return movement

    @staticmethod
    def delete(unit: LedgerTransaction, movement: StockMovement) -> None:
        _require_open(unit)
        StockMovement.objects.filter(pk=movement.pk).delete()
