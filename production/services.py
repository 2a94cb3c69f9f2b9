"""
Production — Service Layer

Multi-entity stock flows built on the stock ledger:

  * ProductionService.record_batch — creates the batch (its own stock =
    quantity produced) and consumes every raw material line.
  * ProductionService.cancel_batch — reverses the material consumption of a
    batch nothing has been drawn from yet.
  * IssueService.issue_materials — hands materials out of the store.

Each flow runs as ONE ledger unit (LedgerService.atomic): the batch/issue
rows and all N material balances commit together or not at all, and the
whole unit is retried on a balance conflict.

@file production/services.py
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_UPDATE
from core.exceptions import BusinessRuleViolation, InvalidMovement, ResourceNotFoundError, StockConflict
from core.services import AuditService
from inventory.models import Product
from stock.effects import to_quantity
from stock.models import StockMovement
from stock.services import LedgerService

from .models import BatchMaterial, MaterialIssue, MaterialIssueItem, ProductionBatch

logger = logging.getLogger('prodtrack')

UNIT_COST_QUANTUM = Decimal('0.0001')
BATCH_CODE_ATTEMPTS = 5


def _positive_quantity(value, label: str) -> Decimal:
    try:
        quantity = to_quantity(value)
    except InvalidMovement as exc:
        raise BusinessRuleViolation(detail=f'{label}: {exc.detail}')
    if quantity <= 0:
        raise BusinessRuleViolation(detail=f'{label}: quantity must be greater than 0.')
    return quantity


def _not_in_future(value, label: str) -> None:
    if value > timezone.localdate():
        raise BusinessRuleViolation(detail=f'{label} cannot be in the future.')


class ProductionService:
    """Production batches and their raw-material consumption."""

    @staticmethod
    def next_batch_code(production_date) -> str:
        """B<YYYY>-<MM>-<DD>-<NN>, numbered per production day."""
        prefix = f'B{production_date:%Y-%m-%d}-'
        codes = ProductionBatch.objects.filter(batch_code__startswith=prefix).values_list('batch_code', flat=True)
        suffixes = [code[len(prefix):] for code in codes]
        taken = max((int(suffix) for suffix in suffixes if suffix.isdigit()), default=0)
        return f'{prefix}{taken + 1:02d}'

    @staticmethod
    def _save_under_next_code(batch: ProductionBatch) -> None:
        """
        Save a new batch under the next free code of its production day.

        A concurrent batch of the same day can take the code between the
        lookup and the insert; the unique index then rejects ours and the
        next code is tried.
        """
        for attempt in range(1, BATCH_CODE_ATTEMPTS + 1):
            batch.batch_code = ProductionService.next_batch_code(batch.production_date)
            try:
                with transaction.atomic():
                    batch.save()
                return
            except IntegrityError:
                if not ProductionBatch.objects.filter(batch_code=batch.batch_code).exists():
                    raise
                logger.warning(
                    'Batch code %s already taken (attempt %d/%d).',
                    batch.batch_code, attempt, BATCH_CODE_ATTEMPTS,
                )
        raise StockConflict(detail='Could not allocate a batch code, please retry.')

    @staticmethod
    def record_batch(
        *,
        product_id,
        production_date,
        quantity_produced,
        materials: list[dict],
        selling_price: Decimal | None = None,
        produced_by: str = '',
        notes: str = '',
        actor=None,
    ) -> ProductionBatch:
        """
        Record a production batch and consume its raw materials.

        `materials` items: {'material_id', 'quantity', 'cost', 'supplier'}.
        Every material must have enough stock; otherwise nothing is written.
        """
        quantity_produced = _positive_quantity(quantity_produced, 'Quantity produced')
        _not_in_future(production_date, 'Production date')
        if not materials:
            raise BusinessRuleViolation(detail='Please add at least one material.')

        lines = []
        for index, line in enumerate(materials, start=1):
            cost = Decimal(str(line.get('cost') or '0'))
            if cost < 0:
                raise BusinessRuleViolation(detail=f'Material line {index}: cost cannot be negative.')
            lines.append({
                'material_id': line['material_id'],
                'quantity': _positive_quantity(line.get('quantity'), f'Material line {index}'),
                'cost': cost,
                'supplier': (line.get('supplier') or '').strip(),
            })

        def operation(unit) -> ProductionBatch:
            try:
                product = Product.objects.get(pk=product_id, is_deleted=False)
            except Product.DoesNotExist:
                raise ResourceNotFoundError(detail='Product not found.')

            total_cost = sum((line['cost'] for line in lines), Decimal('0'))
            expiry_date = None
            if product.shelf_life_days:
                expiry_date = production_date + timedelta(days=product.shelf_life_days)

            batch = ProductionBatch(
                product=product,
                production_date=production_date,
                expiry_date=expiry_date,
                initial_stock=quantity_produced,
                unit=product.unit,
                unit_cost=(total_cost / quantity_produced).quantize(UNIT_COST_QUANTUM),
                selling_price=selling_price if selling_price is not None else product.selling_price,
                produced_by=produced_by.strip(),
                notes=notes.strip(),
                created_by=actor,
            )
            ProductionService._save_under_next_code(batch)

            for line in lines:
                movement = LedgerService.consume_for_production(
                    material_id=line['material_id'],
                    quantity=line['quantity'],
                    batch_id=batch.pk,
                    batch_code=batch.batch_code,
                    occurred_on=production_date,
                    actor=actor,
                )
                BatchMaterial.objects.create(
                    batch=batch,
                    material_id=movement.entity_id,
                    quantity=line['quantity'],
                    cost=line['cost'],
                    supplier=line['supplier'],
                    movement=movement,
                )

            transaction.on_commit(lambda: AuditService.emit(
                actor=actor,
                action=AUDIT_ACTION_CREATE,
                model_name='ProductionBatch',
                object_id=str(batch.pk),
                description=(
                    f'New production batch {batch.batch_code} was created '
                    f'({quantity_produced.normalize():f} {batch.unit})'
                ),
                new_values=AuditService.snapshot(batch),
            ))
            return batch

        batch = LedgerService.atomic(operation)
        logger.info(
            'ProductionBatch %s recorded: %s %s of %s, %d materials consumed.',
            batch.batch_code, quantity_produced, batch.unit, batch.product_id, len(lines),
        )
        return batch

    @staticmethod
    def cancel_batch(*, batch_id, actor=None) -> ProductionBatch:
        """
        Cancel a batch: return its raw materials to stock and write its own
        balance off. Refused once any movement has been recorded against the
        batch (goods already loaded, wasted or adjusted).
        """

        def operation(unit) -> ProductionBatch:
            try:
                batch = ProductionBatch.objects.get(pk=batch_id)
            except ProductionBatch.DoesNotExist:
                raise ResourceNotFoundError(detail='Production batch not found.')
            if batch.status == ProductionBatch.StatusChoices.CANCELLED:
                raise BusinessRuleViolation(detail=f'Batch {batch.batch_code} is already cancelled.')
            if LedgerService.movements_for(StockMovement.EntityType.PRODUCTION_BATCH, batch.pk).exists():
                raise BusinessRuleViolation(
                    detail=f'Batch {batch.batch_code} already has stock movements and cannot be cancelled.',
                )

            for line in batch.materials_used.exclude(movement__isnull=True):
                LedgerService.delete_movement(
                    entity_type=StockMovement.EntityType.MATERIAL,
                    entity_id=line.material_id,
                    movement_id=line.movement_id,
                    actor=actor,
                )

            if batch.initial_stock > 0:
                LedgerService.create_movement(
                    entity_type=StockMovement.EntityType.PRODUCTION_BATCH,
                    entity_id=batch.pk,
                    movement_type=StockMovement.MovementType.ADJUSTMENT,
                    direction=StockMovement.Direction.DECREASE,
                    quantity=batch.initial_stock,
                    reference=batch.batch_code,
                    notes='Batch cancelled',
                    reference_type='ProductionBatch',
                    reference_id=batch.pk,
                    actor=actor,
                )

            batch.status = ProductionBatch.StatusChoices.CANCELLED
            batch.updated_by = actor
            batch.save(update_fields=['status', 'updated_by', 'updated_at'])

            transaction.on_commit(lambda: AuditService.emit(
                actor=actor,
                action=AUDIT_ACTION_UPDATE,
                model_name='ProductionBatch',
                object_id=str(batch.pk),
                description=f'Production batch {batch.batch_code} was cancelled',
                old_values={'status': ProductionBatch.StatusChoices.COMPLETED.value},
                new_values={'status': ProductionBatch.StatusChoices.CANCELLED.value},
            ))
            return batch

        batch = LedgerService.atomic(operation)
        logger.info('ProductionBatch %s cancelled by %s.', batch.batch_code, actor)
        return batch


class IssueService:
    """Material issues out of the store."""

    @staticmethod
    def issue_materials(
        *,
        issue_date,
        issued_to: str,
        purpose: str,
        department: str,
        items: list[dict],
        notes: str = '',
        actor=None,
    ) -> MaterialIssue:
        """
        Record an issue and deduct each item from its material.

        `items`: [{'material_id', 'quantity'}]. A line asking for more than
        is available (after earlier lines of the same issue) aborts the
        whole issue with InsufficientStockError.
        """
        issued_to = (issued_to or '').strip()
        purpose = (purpose or '').strip()
        if not issued_to:
            raise BusinessRuleViolation(detail='Recipient is required.')
        if not purpose:
            raise BusinessRuleViolation(detail='Purpose is required.')
        if department not in MaterialIssue.DepartmentChoices.values:
            raise BusinessRuleViolation(detail=f'Invalid department: {department}.')
        _not_in_future(issue_date, 'Issue date')
        if not items:
            raise BusinessRuleViolation(detail='Please add at least one material.')

        lines = [
            {
                'material_id': item['material_id'],
                'quantity': _positive_quantity(item.get('quantity'), f'Item {index}'),
            }
            for index, item in enumerate(items, start=1)
        ]

        def operation(unit) -> MaterialIssue:
            issue = MaterialIssue.objects.create(
                issue_date=issue_date,
                issued_to=issued_to,
                purpose=purpose,
                department=department,
                notes=(notes or '').strip(),
                created_by=actor,
            )
            for line in lines:
                movement = LedgerService.create_movement(
                    entity_type=StockMovement.EntityType.MATERIAL,
                    entity_id=line['material_id'],
                    movement_type=StockMovement.MovementType.CONSUMED,
                    quantity=line['quantity'],
                    occurred_on=issue_date,
                    reference=issued_to,
                    notes=f'Issued to {issued_to} for {purpose}',
                    reference_type='MaterialIssue',
                    reference_id=issue.pk,
                    actor=actor,
                    require_available=True,
                )
                MaterialIssueItem.objects.create(
                    issue=issue,
                    material_id=movement.entity_id,
                    quantity=line['quantity'],
                    movement=movement,
                )

            transaction.on_commit(lambda: AuditService.emit(
                actor=actor,
                action=AUDIT_ACTION_CREATE,
                model_name='MaterialIssue',
                object_id=str(issue.pk),
                description=f'Materials issued to {issued_to} for {purpose} ({len(lines)} items)',
            ))
            return issue

        issue = LedgerService.atomic(operation)
        logger.info('MaterialIssue %s: %d items issued to %s.', issue.pk, len(lines), issued_to)
        return issue
