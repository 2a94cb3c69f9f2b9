"""
Stock — Ledger Service

The single writer of stock balances. Every flow that changes stock (manual
movements, production-batch consumption, material issues) goes through
LedgerService, which:

  1. validates the movement shape before touching the database;
  2. reads the owning entity's balance (read dependency) and, for edits and
     deletes, the stored movement;
  3. computes  new = stock - effect(old) + effect(new)  in one step;
  4. writes balance and movement in one atomic block;
  5. retries the whole attempt on a version conflict or backend failure,
     up to STOCK_LEDGER['MAX_ATTEMPTS'];
  6. emits the activity record after commit, best-effort.

@file stock/services.py
"""

import logging
import time
from decimal import Decimal
from typing import Callable, TypeVar
from uuid import UUID

from django.db import OperationalError, connection, transaction
from django.db.models import Case, DecimalField, F, Q, Sum, Value, When
from django.utils import timezone

from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_DELETE,
    AUDIT_ACTION_STOCK_CLAMPED,
    AUDIT_ACTION_UPDATE,
    NEGATIVE_STOCK_REJECT,
)
from core.exceptions import InsufficientStockError, InvalidMovement, StockConflict, StockUnavailable
from core.services import AuditService

from .conf import ledger_setting
from .effects import (
    DIRECTIONS,
    INBOUND_TYPES,
    MOVEMENT_TYPES,
    OUTBOUND_TYPES,
    effect_of,
    movement_effect,
    to_quantity,
    validate_movement_fields,
)
from .models import QUANTITY_FIELD_OPTIONS, StockMovement
from .stores import (
    HOLDER_MODELS,
    BalanceSnapshot,
    BalanceStore,
    BalanceVersionMismatch,
    LedgerTransaction,
    MovementStore,
    activate,
    current_transaction,
    deactivate,
    holder_model,
    normalize_entity_id,
)

logger = logging.getLogger('prodtrack')

T = TypeVar('T')

EDITABLE_FIELDS = ('movement_type', 'direction', 'quantity', 'occurred_on', 'reference', 'notes')
AUDITED_FIELDS = ['entity_type', 'entity_id', 'movement_type', 'direction', 'quantity', 'occurred_on', 'reference']


def _fmt(quantity: Decimal) -> str:
    return f'{quantity.normalize():f}'


def _movement_values(movement: StockMovement) -> dict:
    return AuditService.snapshot(movement, fields=AUDITED_FIELDS)


def _emit_after_commit(**kwargs) -> None:
    transaction.on_commit(lambda: AuditService.emit(**kwargs))


def _apply_attempt_timeout() -> None:
    timeout_ms = int(ledger_setting('ATTEMPT_TIMEOUT_MS') or 0)
    if timeout_ms <= 0 or connection.vendor != 'postgresql':
        return
    with connection.cursor() as cursor:
        cursor.execute(f'SET LOCAL statement_timeout = {timeout_ms}')


def _net_effect_expression():
    """SQL expression for the signed effect of one movement row."""
    out = DecimalField(**QUANTITY_FIELD_OPTIONS)
    increase = Q(movement_type__in=INBOUND_TYPES) | Q(
        movement_type=StockMovement.MovementType.ADJUSTMENT,
        direction=StockMovement.Direction.INCREASE,
    )
    decrease = Q(movement_type__in=OUTBOUND_TYPES) | Q(
        movement_type=StockMovement.MovementType.ADJUSTMENT,
        direction=StockMovement.Direction.DECREASE,
    )
    return Sum(
        Case(
            When(increase, then=F('quantity')),
            When(decrease, then=-F('quantity')),
            default=Value(Decimal('0')),
            output_field=out,
        ),
        output_field=out,
    )


class LedgerService:
    """Create / edit / delete stock movements with their balance effect, atomically."""

    # --- Transaction coordination ---

    @staticmethod
    def atomic(operation: Callable[[LedgerTransaction], T]) -> T:
        """
        Run `operation(unit)` as one ledger unit.

        Each attempt gets a fresh LedgerTransaction and its own atomic block,
        so a failed attempt leaves nothing behind. Called while another unit
        is active, the operation joins it: the outermost unit owns retries.
        """
        active = current_transaction()
        if active is not None:
            return operation(active)

        max_attempts = max(1, int(ledger_setting('MAX_ATTEMPTS')))
        backoff = float(ledger_setting('RETRY_BACKOFF_SECONDS') or 0)
        failure = None

        for attempt in range(1, max_attempts + 1):
            unit = LedgerTransaction(attempt=attempt)
            token = activate(unit)
            try:
                with transaction.atomic():
                    _apply_attempt_timeout()
                    return operation(unit)
            except BalanceVersionMismatch as exc:
                failure = exc
                logger.warning(
                    'Stock ledger conflict on %s:%s (attempt %d/%d).',
                    exc.entity_type, exc.entity_id, attempt, max_attempts,
                )
            except OperationalError as exc:
                failure = exc
                logger.warning(
                    'Stock ledger backend failure (attempt %d/%d): %s',
                    attempt, max_attempts, exc,
                )
            finally:
                unit.closed = True
                deactivate(token)

            if attempt < max_attempts and backoff > 0:
                time.sleep(backoff * attempt)

        if isinstance(failure, BalanceVersionMismatch):
            logger.error(
                'Stock ledger gave up on %s:%s after %d conflicting attempts.',
                failure.entity_type, failure.entity_id, max_attempts,
            )
            raise StockConflict()
        logger.error('Stock ledger unavailable after %d attempts.', max_attempts)
        raise StockUnavailable() from failure

    @staticmethod
    def _settle(snapshot: BalanceSnapshot, computed: Decimal, actor=None) -> Decimal:
        """Apply the negative-stock policy to a computed balance."""
        if computed >= 0:
            return computed
        if ledger_setting('NEGATIVE_STOCK_POLICY') == NEGATIVE_STOCK_REJECT:
            raise InsufficientStockError(
                detail=(
                    f'Insufficient stock for {snapshot.label}: '
                    f'balance={_fmt(snapshot.stock)}, resulting={_fmt(computed)}.'
                ),
            )
        logger.warning(
            'Stock of %s:%s clamped to 0 (computed %s).',
            snapshot.entity_type, snapshot.entity_id, computed,
        )
        _emit_after_commit(
            actor=actor,
            action=AUDIT_ACTION_STOCK_CLAMPED,
            model_name=snapshot.model_name,
            object_id=str(snapshot.entity_id),
            description=f'Stock of {snapshot.label} clamped to 0 (computed {_fmt(computed)})',
            old_values={'current_stock': str(snapshot.stock)},
            new_values={'computed_stock': str(computed), 'stored_stock': '0'},
        )
        return Decimal('0')

    # --- Movements ---

    @staticmethod
    def create_movement(
        *,
        entity_type: str,
        entity_id: UUID,
        movement_type: str,
        quantity,
        direction: str = '',
        occurred_on=None,
        reference: str = '',
        notes: str = '',
        reference_type: str = '',
        reference_id: UUID | None = None,
        actor=None,
        require_available: bool = False,
    ) -> StockMovement:
        """
        Record a movement and apply its effect to the entity's balance.

        With require_available, a deduction larger than the current balance
        raises InsufficientStockError instead of reaching the clamp.
        """
        direction = direction or ''
        quantity = validate_movement_fields(
            movement_type=movement_type, direction=direction,
            quantity=quantity, occurred_on=occurred_on,
        )
        occurred_on = occurred_on or timezone.localdate()

        def operation(unit: LedgerTransaction) -> StockMovement:
            snapshot = BalanceStore.read_for_update(unit, entity_type, entity_id)
            delta = movement_effect(movement_type, direction, quantity)
            if require_available and delta < 0 and snapshot.stock < quantity:
                raise InsufficientStockError(
                    detail=(
                        f'Insufficient stock for {snapshot.label}: '
                        f'available={_fmt(snapshot.stock)}, requested={_fmt(quantity)}.'
                    ),
                )
            new_stock = LedgerService._settle(snapshot, snapshot.stock + delta, actor)
            BalanceStore.write(unit, snapshot, new_stock)

            movement = MovementStore.create(
                unit,
                entity_type=entity_type,
                entity_id=snapshot.entity_id,
                movement_type=movement_type,
                direction=direction,
                quantity=quantity,
                occurred_on=occurred_on,
                reference=reference or '',
                notes=notes or '',
                reference_type=reference_type or '',
                reference_id=reference_id,
                created_by=actor,
                created_at=timezone.now(),
            )
            if movement_type == StockMovement.MovementType.PURCHASE and reference:
                LedgerService._remember_supplier(snapshot, reference)

            _emit_after_commit(
                actor=actor,
                action=AUDIT_ACTION_CREATE,
                model_name='StockMovement',
                object_id=str(movement.pk),
                description=f'{movement_type} recorded: {_fmt(quantity)} {snapshot.unit} of {snapshot.label}',
                new_values=_movement_values(movement),
            )
            logger.info(
                'StockMovement %s %s qty=%s entity=%s:%s stock=%s',
                movement_type, movement.pk, quantity, entity_type, snapshot.entity_id, new_stock,
            )
            return movement

        return LedgerService.atomic(operation)

    @staticmethod
    def edit_movement(
        *,
        entity_type: str,
        entity_id: UUID,
        movement_id: UUID,
        actor=None,
        **changes,
    ) -> StockMovement:
        """
        Replace fields of a stored movement and move the balance by
        effect(new) - effect(old) in a single step.

        `changes` may be partial; unspecified fields keep their stored value.
        Switching to a non-adjustment type drops the stored direction.
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidMovement(detail=f'Fields cannot be edited: {", ".join(sorted(unknown))}.')
        if 'movement_type' in changes and changes['movement_type'] not in MOVEMENT_TYPES:
            raise InvalidMovement(detail=f'Invalid movement_type: {changes["movement_type"]}.')
        if changes.get('direction') and changes['direction'] not in DIRECTIONS:
            raise InvalidMovement(detail=f'Invalid direction: {changes["direction"]}.')
        if 'quantity' in changes:
            changes['quantity'] = to_quantity(changes['quantity'])
            if changes['quantity'] <= 0:
                raise InvalidMovement(detail='Quantity must be positive.')
        if changes.get('occurred_on') and changes['occurred_on'] > timezone.localdate():
            raise InvalidMovement(detail='Date cannot be in the future.')
        is_adjustment = changes.get('movement_type') == StockMovement.MovementType.ADJUSTMENT
        if 'movement_type' in changes and not is_adjustment and changes.get('direction'):
            raise InvalidMovement(detail='Direction is only allowed on adjustments.')
        if is_adjustment and 'direction' in changes and not changes['direction']:
            raise InvalidMovement(detail='Adjustments require a direction (INCREASE or DECREASE).')
        # Other pairings depend on the stored row and are checked on the merged movement.

        def operation(unit: LedgerTransaction) -> StockMovement:
            snapshot = BalanceStore.read_for_update(unit, entity_type, entity_id)
            movement = MovementStore.get(
                unit, entity_type=entity_type, entity_id=snapshot.entity_id, movement_id=movement_id,
            )
            old_values = _movement_values(movement)
            old_delta = effect_of(movement)

            merged = {name: getattr(movement, name) for name in EDITABLE_FIELDS}
            merged.update(changes)
            if merged['movement_type'] != StockMovement.MovementType.ADJUSTMENT and 'direction' not in changes:
                merged['direction'] = ''
            merged['direction'] = merged['direction'] or ''
            merged['reference'] = merged['reference'] or ''
            merged['notes'] = merged['notes'] or ''
            merged['quantity'] = validate_movement_fields(
                movement_type=merged['movement_type'],
                direction=merged['direction'],
                quantity=merged['quantity'],
                occurred_on=merged['occurred_on'],
            )
            new_delta = movement_effect(merged['movement_type'], merged['direction'], merged['quantity'])

            new_stock = LedgerService._settle(snapshot, snapshot.stock - old_delta + new_delta, actor)
            BalanceStore.write(unit, snapshot, new_stock)
            movement = MovementStore.replace(
                unit, movement,
                updated_by=actor,
                updated_at=timezone.now(),
                **merged,
            )

            _emit_after_commit(
                actor=actor,
                action=AUDIT_ACTION_UPDATE,
                model_name='StockMovement',
                object_id=str(movement.pk),
                description=(
                    f'{movement.movement_type} movement updated: '
                    f'{_fmt(movement.quantity)} {snapshot.unit} of {snapshot.label}'
                ),
                old_values=old_values,
                new_values=_movement_values(movement),
            )
            logger.info(
                'StockMovement %s edited: delta %s -> %s, entity=%s:%s stock=%s',
                movement.pk, old_delta, new_delta, entity_type, snapshot.entity_id, new_stock,
            )
            return movement

        return LedgerService.atomic(operation)

    @staticmethod
    def delete_movement(
        *,
        entity_type: str,
        entity_id: UUID,
        movement_id: UUID,
        actor=None,
    ) -> None:
        """Remove a movement and reverse its effect on the balance."""

        def operation(unit: LedgerTransaction) -> None:
            snapshot = BalanceStore.read_for_update(unit, entity_type, entity_id)
            movement = MovementStore.get(
                unit, entity_type=entity_type, entity_id=snapshot.entity_id, movement_id=movement_id,
            )
            reversal = -effect_of(movement)
            new_stock = LedgerService._settle(snapshot, snapshot.stock + reversal, actor)
            BalanceStore.write(unit, snapshot, new_stock)

            old_values = _movement_values(movement)
            movement_pk = movement.pk
            MovementStore.delete(unit, movement)

            _emit_after_commit(
                actor=actor,
                action=AUDIT_ACTION_DELETE,
                model_name='StockMovement',
                object_id=str(movement_pk),
                description=(
                    f'{old_values["movement_type"]} movement deleted: '
                    f'{_fmt(movement.quantity)} {snapshot.unit} of {snapshot.label}'
                ),
                old_values=old_values,
            )
            logger.info(
                'StockMovement %s deleted: reversal %s, entity=%s:%s stock=%s',
                movement_pk, reversal, entity_type, snapshot.entity_id, new_stock,
            )

        LedgerService.atomic(operation)

    @staticmethod
    def consume_for_production(
        *,
        material_id: UUID,
        quantity,
        batch_id: UUID,
        batch_code: str,
        occurred_on=None,
        actor=None,
        require_available: bool = True,
    ) -> StockMovement:
        """
        CONSUMED movement on a raw material for a production batch. Joins
        the caller's ledger unit, so it commits or rolls back together with
        the batch record.
        """
        return LedgerService.create_movement(
            entity_type=StockMovement.EntityType.MATERIAL,
            entity_id=material_id,
            movement_type=StockMovement.MovementType.CONSUMED,
            quantity=quantity,
            occurred_on=occurred_on,
            reference=batch_code,
            notes=f'Used in production batch {batch_code}',
            reference_type='ProductionBatch',
            reference_id=batch_id,
            actor=actor,
            require_available=require_available,
        )

    @staticmethod
    def _remember_supplier(snapshot: BalanceSnapshot, supplier: str) -> None:
        model = holder_model(snapshot.entity_type)
        if any(f.name == 'last_supplier' for f in model._meta.get_fields()):
            model.objects.filter(pk=snapshot.entity_id).update(last_supplier=supplier[:255])

    # --- Queries ---

    @staticmethod
    def get_current_stock(*, entity_type: str, entity_id: UUID) -> Decimal:
        """Read-only current balance; EntityNotFound when the entity is missing."""
        return BalanceStore.load(entity_type, entity_id).current_stock

    @staticmethod
    def balance(*, entity_type: str, entity_id: UUID) -> dict:
        holder = BalanceStore.load(entity_type, entity_id)
        return {
            'entity_type': entity_type,
            'entity_id': holder.pk,
            'label': str(holder),
            'unit': holder.unit,
            'current_stock': holder.current_stock,
        }

    @staticmethod
    def movements_for(entity_type: str, entity_id: UUID):
        return StockMovement.objects.filter(
            entity_type=entity_type, entity_id=normalize_entity_id(entity_id),
        )

    @staticmethod
    def net_effect(entity_type: str, entity_id: UUID) -> Decimal:
        """Sum of the effects of every live movement of one entity."""
        result = LedgerService.movements_for(entity_type, entity_id).aggregate(
            net=_net_effect_expression(),
        )
        return result['net'] or Decimal('0')

    # --- Reconciliation ---

    @staticmethod
    def reconcile(*, entity_type: str, entity_id: UUID) -> dict:
        """
        Compare the cached balance with initial_stock + sum of effects.
        A non-zero drift means a clamp happened or the balance was written
        outside the ledger.
        """
        holder = BalanceStore.load(entity_type, entity_id)
        expected = holder.initial_stock + LedgerService.net_effect(entity_type, holder.pk)
        return {
            'entity_type': entity_type,
            'entity_id': str(holder.pk),
            'label': str(holder),
            'current_stock': holder.current_stock,
            'expected_stock': expected,
            'drift': holder.current_stock - expected,
        }

    @staticmethod
    def reconcile_all() -> list[dict]:
        """Drift report for every holder whose balance disagrees with its log."""
        drifted = []
        for entity_type in HOLDER_MODELS:
            model = holder_model(entity_type)
            nets = dict(
                StockMovement.objects
                .filter(entity_type=entity_type)
                .order_by()
                .values('entity_id')
                .annotate(net=_net_effect_expression())
                .values_list('entity_id', 'net')
            )
            for holder in model.objects.only('id', 'initial_stock', 'current_stock').iterator():
                expected = holder.initial_stock + (nets.get(holder.pk) or Decimal('0'))
                if holder.current_stock != expected:
                    drifted.append({
                        'entity_type': entity_type,
                        'entity_id': str(holder.pk),
                        'current_stock': holder.current_stock,
                        'expected_stock': expected,
                        'drift': holder.current_stock - expected,
                    })
        return drifted
