from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from torquetrack.errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from torquetrack.models import (
    JobOrderPartLine,
    Part,
    PurchaseOrderItem,
    SalesOrderLine,
    StockAdjustmentType,
)
from torquetrack.services.document_math_service import to_money, validate_quantity
from torquetrack.services.notification_service import notify_low_stock, notify_stock_adjusted

logger = logging.getLogger(__name__)

UPDATABLE_PART_FIELDS = {
    'name',
    'brand',
    'category',
    'sku',
    'price',
    'cost',
    'supplier_name',
    'min_stock_alert',
    'notes',
    'is_active',
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def get_part(db: Session, part_id: str) -> Part:
    part = db.execute(select(Part).where(Part.id == part_id)).scalar_one_or_none()
    if part is None:
        raise NotFoundError(f'Part {part_id} not found')
    return part


def list_parts(db: Session, *, active_only: bool = False, in_stock_only: bool = False) -> list[Part]:
    query = select(Part).order_by(Part.name.asc())
    if active_only:
        query = query.where(Part.is_active.is_(True))
    if in_stock_only:
        query = query.where(Part.stock_quantity > 0)
    return db.execute(query).scalars().all()


def list_low_stock_parts(db: Session) -> list[Part]:
    return db.execute(
        select(Part)
        .where(
            Part.is_active.is_(True),
            Part.min_stock_alert.is_not(None),
            Part.stock_quantity <= Part.min_stock_alert,
        )
        .order_by(Part.stock_quantity.asc(), Part.name.asc())
    ).scalars().all()


def create_part(
    db: Session,
    *,
    name: str,
    price: Decimal,
    cost: Decimal | None = None,
    stock_quantity: int = 0,
    min_stock_alert: int | None = None,
    brand: str | None = None,
    category: str | None = None,
    sku: str | None = None,
    supplier_name: str | None = None,
    notes: str | None = None,
    is_active: bool = True,
) -> Part:
    clean_name = (name or '').strip()
    if not clean_name:
        raise ValidationError('Part name is required')
    if to_money(price) < 0:
        raise ValidationError('Price cannot be negative')
    if cost is not None and to_money(cost) < 0:
        raise ValidationError('Cost cannot be negative')
    validate_quantity(stock_quantity, field='Stock quantity', minimum=0)
    if min_stock_alert is not None:
        validate_quantity(min_stock_alert, field='Minimum stock alert', minimum=0)

    part = Part(
        name=clean_name,
        brand=brand,
        category=category,
        sku=(sku or '').strip() or None,
        price=to_money(price),
        cost=to_money(cost) if cost is not None else None,
        supplier_name=supplier_name,
        stock_quantity=stock_quantity,
        min_stock_alert=min_stock_alert,
        notes=notes,
        is_active=is_active,
    )
    db.add(part)
    db.flush()
    return part


def update_part(db: Session, *, part_id: str, changes: dict) -> Part:
    changes = dict(changes)
    part = get_part(db, part_id)
    if 'stock_quantity' in changes:
        raise ValidationError('Stock quantity can only change through stock adjustments')
    unknown = set(changes) - UPDATABLE_PART_FIELDS
    if unknown:
        raise ValidationError(f'Unknown part fields: {", ".join(sorted(unknown))}')

    if 'name' in changes and not (changes['name'] or '').strip():
        raise ValidationError('Part name is required')
    for money_field in ('price', 'cost'):
        if changes.get(money_field) is not None:
            if to_money(changes[money_field]) < 0:
                raise ValidationError(f'{money_field.capitalize()} cannot be negative')
            changes[money_field] = to_money(changes[money_field])
    if 'price' in changes and changes['price'] is None:
        raise ValidationError('Price is required')
    if changes.get('min_stock_alert') is not None:
        validate_quantity(changes['min_stock_alert'], field='Minimum stock alert', minimum=0)

    for field, value in changes.items():
        setattr(part, field, value.strip() if field == 'name' else value)
    part.updated_at = _now()
    db.flush()
    return part


def delete_part(db: Session, *, part_id: str) -> None:
    part = get_part(db, part_id)
    referenced = (
        db.execute(select(PurchaseOrderItem.id).where(PurchaseOrderItem.part_id == part_id).limit(1)).first()
        or db.execute(select(JobOrderPartLine.id).where(JobOrderPartLine.part_id == part_id).limit(1)).first()
        or db.execute(select(SalesOrderLine.id).where(SalesOrderLine.part_id == part_id).limit(1)).first()
    )
    if referenced:
        raise InvalidStateError('Part is referenced by existing documents; deactivate it instead')
    db.delete(part)
    db.flush()


def adjust_stock(db: Session, *, part_id: str, delta: int) -> Part:
    """Apply ``delta`` to a part's stock in a single conditional UPDATE.

    The row is only touched when the result stays non-negative, so two writers
    racing on the same part cannot lose an update or overdraw the stock.
    """
    if isinstance(delta, bool) or int(delta) != delta:
        raise ValidationError('Stock adjustment must be a whole number')
    db.flush()
    part = get_part(db, part_id)
    if delta == 0:
        return part

    result = db.execute(
        update(Part)
        .where(Part.id == part_id, Part.stock_quantity + delta >= 0)
        .values(stock_quantity=Part.stock_quantity + delta, updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    db.refresh(part)
    if result.rowcount == 0:
        raise InsufficientStockError(part_id, -delta, part.stock_quantity)

    logger.debug('Adjusted stock of part %s by %s to %s', part_id, delta, part.stock_quantity)
    if delta < 0:
        notify_low_stock(db, part=part)
    return part


def apply_manual_adjustment(
    db: Session,
    *,
    part_id: str,
    adjustment_type: StockAdjustmentType,
    quantity: int,
    reason: str,
    actor_user_id: str | None = None,
) -> Part:
    validate_quantity(quantity)
    clean_reason = (reason or '').strip()
    if not clean_reason:
        raise ValidationError('A reason is required for stock adjustments')
    try:
        adjustment_type = StockAdjustmentType(adjustment_type)
    except ValueError as exc:
        raise ValidationError('Adjustment type must be ADD or REMOVE') from exc

    delta = quantity if adjustment_type == StockAdjustmentType.ADD else -quantity
    part = adjust_stock(db, part_id=part_id, delta=delta)
    notify_stock_adjusted(
        db,
        actor_user_id=actor_user_id,
        part=part,
        adjustment_type=adjustment_type,
        quantity=quantity,
        reason=clean_reason,
    )
    return part
