"""
Stock — Quantity Effect Resolver

Pure functions mapping a movement's (type, direction, quantity) to the
signed delta it contributes to its entity's balance. No database access.

    PURCHASE, ADJUSTMENT/INCREASE          -> +quantity
    CONSUMED, WASTAGE, ADJUSTMENT/DECREASE -> -quantity

@file stock/effects.py
"""

from datetime import date
from decimal import Decimal, InvalidOperation

from django.utils import timezone

from core.constants import STOCK_QUANTUM
from core.exceptions import InvalidMovement

from .models import StockMovement

INBOUND_TYPES = {StockMovement.MovementType.PURCHASE.value}
OUTBOUND_TYPES = {
    StockMovement.MovementType.CONSUMED.value,
    StockMovement.MovementType.WASTAGE.value,
}
# ADJUSTMENT goes either way depending on direction.

MOVEMENT_TYPES = {choice.value for choice in StockMovement.MovementType}
DIRECTIONS = {choice.value for choice in StockMovement.Direction}


def to_quantity(value) -> Decimal:
    """Coerce user input to Decimal; bools, garbage and sub-quantum input are InvalidMovement."""
    if value is None or value == '' or isinstance(value, bool):
        raise InvalidMovement(detail='Quantity is required.')
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidMovement(detail=f'Invalid quantity: {value!r}.')
    if not quantity.is_finite():
        raise InvalidMovement(detail=f'Invalid quantity: {value!r}.')
    # Movements and balances are stored at STOCK_QUANTUM; finer input would drift.
    try:
        exact = quantity == quantity.quantize(STOCK_QUANTUM)
    except InvalidOperation:
        raise InvalidMovement(detail=f'Invalid quantity: {value!r}.')
    if not exact:
        raise InvalidMovement(detail=f'Quantity {value} has more than 3 decimal places.')
    return quantity


def validate_movement_fields(
    *,
    movement_type: str,
    direction: str = '',
    quantity,
    occurred_on: date | None = None,
) -> Decimal:
    """
    Shape checks run before any I/O. Returns the quantity as Decimal.

    Raises InvalidMovement when the type or direction is unknown, when
    direction is missing on an adjustment or present on anything else, when
    quantity <= 0, or when the date lies in the future.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise InvalidMovement(detail=f'Invalid movement_type: {movement_type}.')
    if direction and direction not in DIRECTIONS:
        raise InvalidMovement(detail=f'Invalid direction: {direction}.')
    if movement_type == StockMovement.MovementType.ADJUSTMENT and not direction:
        raise InvalidMovement(detail='Adjustments require a direction (INCREASE or DECREASE).')
    if movement_type != StockMovement.MovementType.ADJUSTMENT and direction:
        raise InvalidMovement(detail='Direction is only allowed on adjustments.')

    quantity = to_quantity(quantity)
    if quantity <= 0:
        raise InvalidMovement(detail='Quantity must be positive.')

    if occurred_on is not None and occurred_on > timezone.localdate():
        raise InvalidMovement(detail='Date cannot be in the future.')
    return quantity


def movement_sign(movement_type: str, direction: str = '') -> int:
    if movement_type in INBOUND_TYPES:
        return 1
    if movement_type in OUTBOUND_TYPES:
        return -1
    if movement_type == StockMovement.MovementType.ADJUSTMENT:
        if direction == StockMovement.Direction.INCREASE:
            return 1
        if direction == StockMovement.Direction.DECREASE:
            return -1
        raise InvalidMovement(detail='Adjustments require a direction (INCREASE or DECREASE).')
    raise InvalidMovement(detail=f'Invalid movement_type: {movement_type}.')


def movement_effect(movement_type: str, direction: str, quantity) -> Decimal:
    """Signed delta of one movement. Deterministic; raises InvalidMovement on bad input."""
    quantity = validate_movement_fields(
        movement_type=movement_type, direction=direction or '', quantity=quantity,
    )
    return movement_sign(movement_type, direction or '') * quantity


def effect_of(movement: StockMovement) -> Decimal:
    return movement_effect(movement.movement_type, movement.direction, movement.quantity)
