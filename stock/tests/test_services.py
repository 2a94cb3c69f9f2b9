"""
Tests — LedgerService: create / edit / delete with balance effects,
negative-stock policy, conflict retry, backend failures, post-commit audit,
reconciliation.

@file stock/tests/test_services.py
"""

import random
import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import DatabaseError, OperationalError
from django.db.models import F
from django.utils import timezone

from core.exceptions import (
    EntityNotFound,
    InsufficientStockError,
    InvalidMovement,
    MovementNotFound,
    StockConflict,
    StockUnavailable,
)
from core.models import AuditLog
from inventory.models import Material
from stock.models import StockMovement
from stock.services import LedgerService
from stock.stores import BalanceStore, MovementStore, current_transaction
from tests.factories import MaterialFactory, ProductionBatchFactory, StockMovementFactory, UserFactory


pytestmark = pytest.mark.django_db

MATERIAL = StockMovement.EntityType.MATERIAL
MT = StockMovement.MovementType
DIR = StockMovement.Direction


def _stock(material):
    material.refresh_from_db()
    return material.current_stock


def _create(material, movement_type, quantity, **kwargs):
    return LedgerService.create_movement(
        entity_type=MATERIAL,
        entity_id=material.pk,
        movement_type=movement_type,
        quantity=quantity,
        **kwargs,
    )


def _edit(material, movement, **changes):
    return LedgerService.edit_movement(
        entity_type=MATERIAL, entity_id=material.pk, movement_id=movement.pk, **changes,
    )


def _delete(material, movement):
    LedgerService.delete_movement(entity_type=MATERIAL, entity_id=material.pk, movement_id=movement.pk)


# ---------------------------------------------------------------------------
# Create / edit / delete
# ---------------------------------------------------------------------------

class TestCreateMovement:

    def test_purchase_increases_stock(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        movement = _create(material, MT.PURCHASE, 50)
        assert _stock(material) == Decimal('150')
        assert movement.quantity == Decimal('50')
        assert movement.direction == ''

    @pytest.mark.parametrize('movement_type, direction, expected', [
        (MT.CONSUMED, '', '80'),
        (MT.WASTAGE, '', '80'),
        (MT.ADJUSTMENT, DIR.DECREASE, '80'),
        (MT.ADJUSTMENT, DIR.INCREASE, '120'),
    ])
    def test_effect_applied(self, movement_type, direction, expected):
        material = MaterialFactory(initial_stock=Decimal('100'))
        _create(material, movement_type, 20, direction=direction)
        assert _stock(material) == Decimal(expected)

    def test_each_write_bumps_version(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        _create(material, MT.PURCHASE, 1)
        _create(material, MT.CONSUMED, 1)
        material.refresh_from_db()
        assert material.version == 2

    def test_defaults_occurred_on_to_today(self):
        material = MaterialFactory()
        movement = _create(material, MT.PURCHASE, 1)
        assert movement.occurred_on == timezone.localdate()

    def test_purchase_remembers_supplier(self):
        material = MaterialFactory()
        _create(material, MT.PURCHASE, 10, reference='Acme Mills')
        material.refresh_from_db()
        assert material.last_supplier == 'Acme Mills'

    def test_fractional_quantities(self):
        material = MaterialFactory(initial_stock=Decimal('1.000'))
        _create(material, MT.CONSUMED, '0.125')
        _create(material, MT.CONSUMED, '0.375')
        assert _stock(material) == Decimal('0.500')

    def test_production_batch_is_a_stock_entity(self):
        batch = ProductionBatchFactory(initial_stock=Decimal('50'))
        LedgerService.create_movement(
            entity_type=StockMovement.EntityType.PRODUCTION_BATCH,
            entity_id=batch.pk,
            movement_type=MT.WASTAGE,
            quantity=5,
        )
        batch.refresh_from_db()
        assert batch.current_stock == Decimal('45')

    def test_invalid_shape_writes_nothing(self):
        material = MaterialFactory(initial_stock=Decimal('10'))
        with pytest.raises(InvalidMovement):
            _create(material, MT.ADJUSTMENT, 5)
        with pytest.raises(InvalidMovement):
            _create(material, MT.PURCHASE, 0)
        assert _stock(material) == Decimal('10')
        assert not StockMovement.objects.filter(entity_id=material.pk).exists()

    @pytest.mark.parametrize('quantity', [Decimal('1.0006'), Decimal('0.0004'), '2.5001'])
    def test_quantity_finer_than_stored_precision_rejected(self, quantity):
        material = MaterialFactory(initial_stock=Decimal('100'))
        with pytest.raises(InvalidMovement):
            _create(material, MT.PURCHASE, quantity)
        assert _stock(material) == Decimal('100')
        assert not StockMovement.objects.filter(entity_id=material.pk).exists()

    def test_stored_precision_quantity_keeps_ledger_balanced(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        movement = _create(material, MT.PURCHASE, Decimal('1.001'))
        report = LedgerService.reconcile(entity_type=MATERIAL, entity_id=material.pk)
        assert report['current_stock'] == Decimal('101.001')
        assert report['drift'] == 0

        _delete(material, movement)
        assert _stock(material) == Decimal('100')


class TestEditMovement:

    def test_quantity_change_moves_balance_by_difference(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        purchase = _create(material, MT.PURCHASE, 50)
        _edit(material, purchase, quantity=30)
        assert _stock(material) == Decimal('130')

    def test_type_change_reverses_old_effect(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        movement = _create(material, MT.PURCHASE, 10)
        _edit(material, movement, movement_type=MT.WASTAGE)
        assert _stock(material) == Decimal('90')

    def test_switching_to_adjustment_requires_direction(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        movement = _create(material, MT.PURCHASE, 10)
        with pytest.raises(InvalidMovement):
            _edit(material, movement, movement_type=MT.ADJUSTMENT)
        assert _stock(material) == Decimal('110')

        _edit(material, movement, movement_type=MT.ADJUSTMENT, direction=DIR.DECREASE)
        assert _stock(material) == Decimal('90')

    def test_leaving_adjustment_drops_direction(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        movement = _create(material, MT.ADJUSTMENT, 10, direction=DIR.INCREASE)
        edited = _edit(material, movement, movement_type=MT.CONSUMED)
        assert edited.direction == ''
        assert _stock(material) == Decimal('90')

    def test_metadata_only_edit_keeps_balance(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        movement = _create(material, MT.PURCHASE, 10)
        edited = _edit(material, movement, reference='Invoice 42', notes='late delivery')
        assert edited.reference == 'Invoice 42'
        assert _stock(material) == Decimal('110')

    def test_records_editor(self):
        material = MaterialFactory()
        user = UserFactory()
        movement = _create(material, MT.PURCHASE, 10)
        edited = LedgerService.edit_movement(
            entity_type=MATERIAL, entity_id=material.pk, movement_id=movement.pk,
            actor=user, quantity=12,
        )
        assert edited.updated_by == user
        assert edited.updated_at is not None

    def test_unknown_field_rejected(self):
        material = MaterialFactory()
        movement = _create(material, MT.PURCHASE, 10)
        with pytest.raises(InvalidMovement):
            _edit(material, movement, reference_id=uuid.uuid4())

    @pytest.mark.parametrize('changes', [
        {'movement_type': MT.WASTAGE, 'direction': DIR.DECREASE},
        {'movement_type': MT.ADJUSTMENT, 'direction': ''},
    ])
    def test_mismatched_pairing_rejected_before_reading_store(self, changes):
        material = MaterialFactory(initial_stock=Decimal('100'))
        movement = _create(material, MT.PURCHASE, 10)
        with patch('stock.services.BalanceStore.read_for_update') as read:
            with pytest.raises(InvalidMovement):
                _edit(material, movement, **changes)
        read.assert_not_called()
        assert _stock(material) == Decimal('110')

    def test_quantity_finer_than_stored_precision_rejected(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        movement = _create(material, MT.PURCHASE, 10)
        with pytest.raises(InvalidMovement):
            _edit(material, movement, quantity=Decimal('10.0004'))
        movement.refresh_from_db()
        assert movement.quantity == Decimal('10')
        assert _stock(material) == Decimal('110')

    def test_edit_equivalent_to_delete_then_create(self):
        edited = MaterialFactory(initial_stock=Decimal('100'))
        replayed = MaterialFactory(initial_stock=Decimal('100'))

        movement = _create(edited, MT.CONSUMED, 20)
        _edit(edited, movement, movement_type=MT.ADJUSTMENT, direction=DIR.INCREASE, quantity=7)

        movement = _create(replayed, MT.CONSUMED, 20)
        _delete(replayed, movement)
        _create(replayed, MT.ADJUSTMENT, 7, direction=DIR.INCREASE)

        assert _stock(edited) == _stock(replayed) == Decimal('107')


class TestDeleteMovement:

    def test_delete_restores_pre_create_balance(self):
        material = MaterialFactory(initial_stock=Decimal('37.250'))
        for movement_type, direction in (
            (MT.PURCHASE, ''), (MT.CONSUMED, ''), (MT.WASTAGE, ''),
            (MT.ADJUSTMENT, DIR.INCREASE), (MT.ADJUSTMENT, DIR.DECREASE),
        ):
            movement = _create(material, movement_type, '12.5', direction=direction)
            _delete(material, movement)
            assert _stock(material) == Decimal('37.250')
        assert not StockMovement.objects.filter(entity_id=material.pk).exists()

    def test_movement_of_another_entity_not_found(self):
        owner = MaterialFactory()
        other = MaterialFactory()
        movement = _create(owner, MT.PURCHASE, 10)
        with pytest.raises(MovementNotFound):
            _delete(other, movement)
        assert StockMovement.objects.filter(pk=movement.pk).exists()

    def test_unknown_movement_not_found(self):
        material = MaterialFactory()
        with pytest.raises(MovementNotFound):
            LedgerService.delete_movement(
                entity_type=MATERIAL, entity_id=material.pk, movement_id=uuid.uuid4(),
            )


class TestScenarios:

    def test_purchase_consume_edit_delete(self):
        material = MaterialFactory(initial_stock=Decimal('100'))

        purchase = _create(material, MT.PURCHASE, 50)
        assert _stock(material) == Decimal('150')

        consumed = _create(material, MT.CONSUMED, 20)
        assert _stock(material) == Decimal('130')

        _edit(material, purchase, quantity=30)
        assert _stock(material) == Decimal('110')

        _delete(material, consumed)
        assert _stock(material) == Decimal('130')

    def test_wastage_below_zero_is_clamped(self, django_capture_on_commit_callbacks):
        material = MaterialFactory(initial_stock=Decimal('5'))

        _create(material, MT.WASTAGE, 5)
        assert _stock(material) == Decimal('0')

        with django_capture_on_commit_callbacks(execute=True):
            _create(material, MT.WASTAGE, 3)
        assert _stock(material) == Decimal('0')
        assert StockMovement.objects.filter(entity_id=material.pk).count() == 2

        clamp = AuditLog.objects.get(action=AuditLog.ActionChoices.STOCK_CLAMPED, object_id=str(material.pk))
        assert clamp.new_values == {'computed_stock': '-3.000', 'stored_stock': '0'}

    def test_conservation_over_mixed_sequence(self):
        rng = random.Random(2026)
        material = MaterialFactory(initial_stock=Decimal('5000'))
        live = []
        for _ in range(60):
            choice = rng.random()
            if live and choice < 0.2:
                _delete(material, live.pop(rng.randrange(len(live))))
            elif live and choice < 0.4:
                index = rng.randrange(len(live))
                live[index] = _edit(material, live[index], quantity=rng.randint(1, 20))
            else:
                movement_type = rng.choice([MT.PURCHASE, MT.CONSUMED, MT.WASTAGE, MT.ADJUSTMENT])
                direction = rng.choice([DIR.INCREASE, DIR.DECREASE]) if movement_type == MT.ADJUSTMENT else ''
                live.append(_create(material, movement_type, rng.randint(1, 20), direction=direction))

            expected = material.initial_stock + LedgerService.net_effect(MATERIAL, material.pk)
            assert _stock(material) == expected

        assert LedgerService.reconcile(entity_type=MATERIAL, entity_id=material.pk)['drift'] == 0


# ---------------------------------------------------------------------------
# Negative-stock policy
# ---------------------------------------------------------------------------

class TestNegativeStockPolicy:

    def test_reject_policy_raises_and_writes_nothing(self, reject_negative_stock):
        material = MaterialFactory(initial_stock=Decimal('5'))
        with pytest.raises(InsufficientStockError):
            _create(material, MT.CONSUMED, 8)
        assert _stock(material) == Decimal('5')
        assert not StockMovement.objects.filter(entity_id=material.pk).exists()

    def test_reject_policy_applies_to_edits(self, reject_negative_stock):
        material = MaterialFactory(initial_stock=Decimal('10'))
        movement = _create(material, MT.CONSUMED, 4)
        with pytest.raises(InsufficientStockError):
            _edit(material, movement, quantity=11)
        assert _stock(material) == Decimal('6')

    def test_reject_policy_applies_to_reversals(self, reject_negative_stock):
        material = MaterialFactory(initial_stock=Decimal('0'))
        purchase = _create(material, MT.PURCHASE, 10)
        _create(material, MT.CONSUMED, 8)
        with pytest.raises(InsufficientStockError):
            _delete(material, purchase)
        assert _stock(material) == Decimal('2')

    def test_require_available_overrides_clamp(self):
        material = MaterialFactory(initial_stock=Decimal('5'))
        with pytest.raises(InsufficientStockError):
            _create(material, MT.CONSUMED, 6, require_available=True)
        assert _stock(material) == Decimal('5')

    def test_require_available_allows_exact_balance(self):
        material = MaterialFactory(initial_stock=Decimal('5'))
        _create(material, MT.CONSUMED, 5, require_available=True)
        assert _stock(material) == Decimal('0')


# ---------------------------------------------------------------------------
# Entity lookup
# ---------------------------------------------------------------------------

class TestEntityLookup:

    def test_unknown_entity(self):
        with pytest.raises(EntityNotFound):
            LedgerService.create_movement(
                entity_type=MATERIAL, entity_id=uuid.uuid4(), movement_type=MT.PURCHASE, quantity=1,
            )

    def test_unknown_entity_type(self):
        material = MaterialFactory()
        with pytest.raises(EntityNotFound):
            LedgerService.create_movement(
                entity_type='WAREHOUSE', entity_id=material.pk, movement_type=MT.PURCHASE, quantity=1,
            )

    def test_malformed_entity_id(self):
        with pytest.raises(EntityNotFound):
            LedgerService.get_current_stock(entity_type=MATERIAL, entity_id='not-a-uuid')

    def test_archived_material_not_found(self):
        material = MaterialFactory()
        material.soft_delete()
        with pytest.raises(EntityNotFound):
            _create(material, MT.PURCHASE, 1)

    def test_get_current_stock(self):
        material = MaterialFactory(initial_stock=Decimal('12'))
        _create(material, MT.CONSUMED, 2)
        assert LedgerService.get_current_stock(entity_type=MATERIAL, entity_id=material.pk) == Decimal('10')


# ---------------------------------------------------------------------------
# Transaction coordination
# ---------------------------------------------------------------------------

class TestLedgerUnit:

    def test_nested_calls_join_the_outer_unit(self):
        first = MaterialFactory(initial_stock=Decimal('10'))
        second = MaterialFactory(initial_stock=Decimal('10'))
        units = []

        def operation(unit):
            units.append(unit)
            _create(first, MT.CONSUMED, 3)
            units.append(current_transaction())
            _create(second, MT.CONSUMED, 4)
            return 'done'

        assert LedgerService.atomic(operation) == 'done'
        assert units[0] is units[1]
        assert current_transaction() is None
        assert _stock(first) == Decimal('7')
        assert _stock(second) == Decimal('6')

    def test_failure_rolls_back_every_entity(self):
        first = MaterialFactory(initial_stock=Decimal('10'))
        second = MaterialFactory(initial_stock=Decimal('10'))

        def operation(unit):
            _create(first, MT.CONSUMED, 3)
            _create(second, MT.CONSUMED, 11, require_available=True)

        with pytest.raises(InsufficientStockError):
            LedgerService.atomic(operation)
        assert _stock(first) == Decimal('10')
        assert _stock(second) == Decimal('10')
        assert not StockMovement.objects.filter(entity_id__in=[first.pk, second.pk]).exists()

    def test_repeated_reads_see_own_writes(self):
        material = MaterialFactory(initial_stock=Decimal('10'))

        def operation(unit):
            _create(material, MT.CONSUMED, 4)
            return BalanceStore.read_for_update(unit, MATERIAL, material.pk).stock

        assert LedgerService.atomic(operation) == Decimal('6')

    def test_stores_refuse_closed_unit(self):
        material = MaterialFactory()
        unit = LedgerService.atomic(lambda unit: unit)
        assert unit.closed
        with pytest.raises(RuntimeError):
            BalanceStore.read_for_update(unit, MATERIAL, material.pk)


class TestConflictRetry:

    def _racing_read(self, material, racing_attempts):
        original = BalanceStore.read_for_update
        seen = []

        def read(unit, entity_type, entity_id):
            snapshot = original(unit, entity_type, entity_id)
            seen.append(unit.attempt)
            if unit.attempt in racing_attempts:
                # Another writer commits between our read and our write.
                Material.objects.filter(pk=material.pk).update(version=F('version') + 1)
            return snapshot

        return read, seen

    def test_conflict_is_retried_and_applied_once(self, django_capture_on_commit_callbacks, caplog):
        material = MaterialFactory(initial_stock=Decimal('100'))
        read, seen = self._racing_read(material, racing_attempts={1})

        with django_capture_on_commit_callbacks(execute=True):
            with patch('stock.services.BalanceStore.read_for_update', side_effect=read):
                _create(material, MT.PURCHASE, 50)

        assert seen == [1, 2]
        assert _stock(material) == Decimal('150')
        assert StockMovement.objects.filter(entity_id=material.pk).count() == 1
        assert AuditLog.objects.filter(model_name='StockMovement').count() == 1
        assert 'conflict' in caplog.text

    def test_exhausted_retries_raise_conflict(self, settings):
        settings.STOCK_LEDGER = {**settings.STOCK_LEDGER, 'MAX_ATTEMPTS': 3}
        material = MaterialFactory(initial_stock=Decimal('100'))
        read, seen = self._racing_read(material, racing_attempts={1, 2, 3})

        with patch('stock.services.BalanceStore.read_for_update', side_effect=read):
            with pytest.raises(StockConflict):
                _create(material, MT.CONSUMED, 10)

        assert seen == [1, 2, 3]
        assert _stock(material) == Decimal('100')
        assert not StockMovement.objects.filter(entity_id=material.pk).exists()

    def test_transient_backend_failure_is_retried(self):
        material = MaterialFactory(initial_stock=Decimal('100'))
        original = MovementStore.create
        calls = []

        def flaky_create(unit, **fields):
            calls.append(unit.attempt)
            if unit.attempt == 1:
                raise OperationalError('database is locked')
            return original(unit, **fields)

        with patch('stock.services.MovementStore.create', side_effect=flaky_create):
            _create(material, MT.CONSUMED, 10)

        assert calls == [1, 2]
        assert _stock(material) == Decimal('90')
        assert StockMovement.objects.filter(entity_id=material.pk).count() == 1

    def test_persistent_backend_failure_is_unavailable(self, settings):
        settings.STOCK_LEDGER = {**settings.STOCK_LEDGER, 'MAX_ATTEMPTS': 2}
        material = MaterialFactory(initial_stock=Decimal('100'))

        with patch('stock.services.MovementStore.create', side_effect=OperationalError('timeout')):
            with pytest.raises(StockUnavailable):
                _create(material, MT.CONSUMED, 10)

        assert _stock(material) == Decimal('100')


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class TestAuditEmission:

    def test_create_audited_after_commit(self, django_capture_on_commit_callbacks):
        user = UserFactory()
        material = MaterialFactory(name='Flour', unit='kg')
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            movement = _create(material, MT.PURCHASE, 50, actor=user)
        assert len(callbacks) == 1

        log = AuditLog.objects.get(model_name='StockMovement', object_id=str(movement.pk))
        assert log.action == AuditLog.ActionChoices.CREATE
        assert log.actor == user
        assert log.description == 'PURCHASE recorded: 50 kg of Flour'

    def test_edit_audit_carries_old_and_new_values(self, django_capture_on_commit_callbacks):
        material = MaterialFactory()
        movement = _create(material, MT.PURCHASE, 50)
        with django_capture_on_commit_callbacks(execute=True):
            _edit(material, movement, quantity=30)
        log = AuditLog.objects.get(action=AuditLog.ActionChoices.UPDATE, model_name='StockMovement')
        assert log.old_values['quantity'] == '50.000'
        assert log.new_values['quantity'] == '30'

    def test_delete_audited(self, django_capture_on_commit_callbacks):
        material = MaterialFactory()
        movement = _create(material, MT.PURCHASE, 5)
        with django_capture_on_commit_callbacks(execute=True):
            _delete(material, movement)
        assert AuditLog.objects.filter(
            action=AuditLog.ActionChoices.DELETE, object_id=str(movement.pk),
        ).exists()

    def test_nothing_audited_when_operation_fails(self, django_capture_on_commit_callbacks, reject_negative_stock):
        material = MaterialFactory(initial_stock=Decimal('1'))
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(InsufficientStockError):
                _create(material, MT.CONSUMED, 2)
        assert callbacks == []

    def test_audit_failure_is_swallowed(self, django_capture_on_commit_callbacks, caplog):
        material = MaterialFactory(initial_stock=Decimal('10'))
        with patch('core.services.AuditService.log', side_effect=DatabaseError('audit sink down')):
            with django_capture_on_commit_callbacks(execute=True):
                movement = _create(material, MT.CONSUMED, 4)

        assert StockMovement.objects.filter(pk=movement.pk).exists()
        assert _stock(material) == Decimal('6')
        assert 'Failed to log activity' in caplog.text


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

class TestReconciliation:

    def test_consistent_entity_has_no_drift(self):
        material = MaterialFactory(initial_stock=Decimal('20'))
        _create(material, MT.PURCHASE, 5)
        _create(material, MT.WASTAGE, 2)
        report = LedgerService.reconcile(entity_type=MATERIAL, entity_id=material.pk)
        assert report['current_stock'] == Decimal('23')
        assert report['expected_stock'] == Decimal('23')
        assert report['drift'] == 0

    def test_clamp_shows_up_as_drift(self):
        material = MaterialFactory(initial_stock=Decimal('2'))
        _create(material, MT.WASTAGE, 5)
        report = LedgerService.reconcile(entity_type=MATERIAL, entity_id=material.pk)
        assert report['expected_stock'] == Decimal('-3')
        assert report['drift'] == Decimal('3')

    def test_reconcile_all_lists_only_drifted_entities(self):
        clean = MaterialFactory(initial_stock=Decimal('10'))
        _create(clean, MT.CONSUMED, 1)
        drifted = MaterialFactory(initial_stock=Decimal('10'))
        StockMovementFactory(entity_id=drifted.pk, movement_type=MT.PURCHASE, quantity=Decimal('4'))

        report = LedgerService.reconcile_all()

        assert [row['entity_id'] for row in report] == [str(drifted.pk)]
        assert report[0]['drift'] == Decimal('-4')
