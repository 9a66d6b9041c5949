from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from torquetrack.models import Part, StockAdjustmentType
from torquetrack.services.audit_service import log_audit

logger = logging.getLogger(__name__)


def notify_stock_adjusted(
    db: Session,
    *,
    actor_user_id: str | None,
    part: Part,
    adjustment_type: StockAdjustmentType,
    quantity: int,
    reason: str,
) -> None:
    payload = {
        'part_name': part.name,
        'adjustment_type': adjustment_type.value,
        'quantity': quantity,
        'new_stock_quantity': part.stock_quantity,
        'reason': reason,
    }
    logger.info(
        'Stock for %s %s by %s (%s). New quantity: %s',
        part.name,
        'increased' if adjustment_type == StockAdjustmentType.ADD else 'decreased',
        quantity,
        reason,
        part.stock_quantity,
    )
    log_audit(
        db,
        actor_user_id=actor_user_id,
        action='STOCK_ADJUSTED',
        entity_type='Part',
        entity_id=part.id,
        metadata=payload,
    )


def notify_low_stock(db: Session, *, part: Part) -> None:
    if part.min_stock_alert is None or part.stock_quantity > part.min_stock_alert:
        return
    logger.warning('Part %s is low on stock: %s left (alert at %s)', part.name, part.stock_quantity, part.min_stock_alert)
    log_audit(
        db,
        actor_user_id=None,
        action='LOW_STOCK_ALERT',
        entity_type='Part',
        entity_id=part.id,
        metadata={'stock_quantity': part.stock_quantity, 'min_stock_alert': part.min_stock_alert},
    )
