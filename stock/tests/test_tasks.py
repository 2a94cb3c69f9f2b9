"""
Tests — stock Celery tasks.

@file stock/tests/test_tasks.py
"""

from decimal import Decimal

import pytest

from stock.models import StockMovement
from stock.services import LedgerService
from stock.tasks import reconcile_stock_balances_task
from tests.factories import MaterialFactory, ProductionBatchFactory, StockMovementFactory


pytestmark = pytest.mark.django_db


class TestReconcileStockBalancesTask:

    def test_reports_nothing_when_ledger_is_consistent(self):
        material = MaterialFactory(initial_stock=Decimal('10'))
        LedgerService.create_movement(
            entity_type=StockMovement.EntityType.MATERIAL,
            entity_id=material.pk,
            movement_type=StockMovement.MovementType.PURCHASE,
            quantity=5,
        )
        result = reconcile_stock_balances_task.delay().get()
        assert result == {'drifted_count': 0, 'entities': []}

    def test_reports_and_logs_drifted_batches(self, caplog):
        batch = ProductionBatchFactory(initial_stock=Decimal('20'))
        StockMovementFactory(
            entity_type=StockMovement.EntityType.PRODUCTION_BATCH,
            entity_id=batch.pk,
            movement_type=StockMovement.MovementType.WASTAGE,
            quantity=Decimal('2'),
        )

        result = reconcile_stock_balances_task()

        assert result['drifted_count'] == 1
        assert result['entities'] == [f'PRODUCTION_BATCH:{batch.pk}']
        assert 'Stock drift on PRODUCTION_BATCH' in caplog.text

    def test_does_not_correct_balances(self):
        material = MaterialFactory(initial_stock=Decimal('10'))
        StockMovementFactory(entity_id=material.pk, quantity=Decimal('3'))
        reconcile_stock_balances_task()
        material.refresh_from_db()
        assert material.current_stock == Decimal('10')
