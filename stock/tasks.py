"""
Stock — Celery Tasks

@file stock/tasks.py
"""

import logging

from celery import shared_task

logger = logging.getLogger('prodtrack')


@shared_task(name='stock.reconcile_stock_balances')
def reconcile_stock_balances_task():
    """
    Nightly task: compare every cached balance with initial_stock plus the
    sum of its movements and log the entities that drifted (clamped
    deductions, writes outside the ledger). Reports only, never corrects.
    """
    from .services import LedgerService

    drifted = LedgerService.reconcile_all()
    for row in drifted:
        logger.warning(
            'Stock drift on %s:%s: current=%s expected=%s drift=%s',
            row['entity_type'], row['entity_id'],
            row['current_stock'], row['expected_stock'], row['drift'],
        )
    logger.info('reconcile_stock_balances_task completed: %d entities drifted.', len(drifted))
    return {
        'drifted_count': len(drifted),
        'entities': [f"{row['entity_type']}:{row['entity_id']}" for row in drifted],
    }
