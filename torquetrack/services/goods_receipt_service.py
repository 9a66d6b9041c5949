from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from torquetrack.errors import InvalidStateError, NotFoundError, ValidationError
from torquetrack.models import GoodsReceipt, GoodsReceiptItem, GoodsReceiptStatus, PurchaseOrder, PurchaseOrderItem
from torquetrack.services.audit_service import log_audit
from torquetrack.services.document_math_service import validate_quantity
from torquetrack.services.inventory_service import adjust_stock
from torquetrack.services.purchase_order_service import (
    RECEIVABLE_STATUSES,
    get_purchase_order,
    get_purchase_order_items,
    set_received_status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptLineInput:
    purchase_order_item_id: str
    quantity_received: int
    condition: str | None = 'Good'
    notes: str | None = None


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _ensure_receivable(po: PurchaseOrder) -> None:
    if po.status not in RECEIVABLE_STATUSES:
        raise InvalidStateError(f'Goods cannot be received against a {po.status.value} purchase order')


def received_quantities(db: Session, purchase_order_id: str) -> dict[str, int]:
    """Quantity received per purchase order item, counting only receipts that credited stock."""
    rows = db.execute(
        select(GoodsReceiptItem.purchase_order_item_id, func.sum(GoodsReceiptItem.quantity_received))
        .join(GoodsReceipt, GoodsReceipt.id == GoodsReceiptItem.receipt_id)
        .where(
            GoodsReceipt.purchase_order_id == purchase_order_id,
            GoodsReceipt.stock_credited_at.is_not(None),
        )
        .group_by(GoodsReceiptItem.purchase_order_item_id)
    ).all()
    return {item_id: int(total or 0) for item_id, total in rows}


def _default_lines(db: Session, po: PurchaseOrder) -> list[ReceiptLineInput]:
    received = received_quantities(db, po.id)
    lines = []
    for item in get_purchase_order_items(db, po.id):
        outstanding = item.quantity - received.get(item.id, 0)
        if outstanding > 0:
            lines.append(ReceiptLineInput(purchase_order_item_id=item.id, quantity_received=outstanding))
    return lines


def _build_items(
    receipt_id: str,
    po_items: list[PurchaseOrderItem],
    lines: list[ReceiptLineInput],
) -> list[GoodsReceiptItem]:
    if not lines:
        raise ValidationError('A goods receipt needs at least one item')
    po_items_by_id = {item.id: item for item in po_items}
    seen: set[str] = set()
    rows: list[GoodsReceiptItem] = []
    for idx, line in enumerate(lines):
        po_item = po_items_by_id.get(line.purchase_order_item_id)
        if po_item is None:
            raise NotFoundError(f'Purchase order item {line.purchase_order_item_id} is not on this purchase order')
        if po_item.id in seen:
            raise ValidationError(f'Purchase order item {po_item.id} appears more than once')
        seen.add(po_item.id)
        validate_quantity(line.quantity_received, field='Quantity received', minimum=0)
        if line.quantity_received > po_item.quantity:
            raise ValidationError(
                f'Quantity received ({line.quantity_received}) exceeds quantity ordered ({po_item.quantity})'
            )
        rows.append(
            GoodsReceiptItem(
                receipt_id=receipt_id,
                position=idx,
                purchase_order_item_id=po_item.id,
                part_id=po_item.part_id,
                part_name=po_item.part_name or po_item.description,
                quantity_ordered=po_item.quantity,
                quantity_received=line.quantity_received,
                condition=line.condition,
                notes=line.notes,
            )
        )
    return rows


def _advance_purchase_order(db: Session, po: PurchaseOrder) -> PurchaseOrder:
    received = received_quantities(db, po.id)
    fully_received = all(received.get(item.id, 0) >= item.quantity for item in get_purchase_order_items(db, po.id))
    return set_received_status(db, purchase_order_id=po.id, fully_received=fully_received)


def _credit_inventory(db: Session, receipt: GoodsReceipt, *, actor_user_id: str | None) -> bool:
    # One credit per receipt, no matter how often it enters Completed.
    if receipt.stock_credited_at is not None:
        return False
    po = get_purchase_order(db, receipt.purchase_order_id)
    _ensure_receivable(po)

    receipt_items = get_goods_receipt_items(db, receipt.id)
    already_received = received_quantities(db, po.id)
    ordered = {item.id: item.quantity for item in get_purchase_order_items(db, po.id)}
    for item in receipt_items:
        total = already_received.get(item.purchase_order_item_id, 0) + item.quantity_received
        limit = ordered.get(item.purchase_order_item_id, 0)
        if total > limit:
            raise ValidationError(
                f'Receiving {item.quantity_received} of {item.part_name or item.purchase_order_item_id} '
                f'would bring the total received to {total}, above the {limit} ordered'
            )

    credited: dict[str, int] = {}
    for item in receipt_items:
        if not item.part_id or item.quantity_received <= 0:
            continue
        adjust_stock(db, part_id=item.part_id, delta=item.quantity_received)
        credited[item.part_id] = credited.get(item.part_id, 0) + item.quantity_received

    receipt.stock_credited_at = _now()
    db.flush()
    po = _advance_purchase_order(db, po)
    log_audit(
        db,
        actor_user_id=actor_user_id,
        action='GOODS_RECEIPT_COMPLETED',
        entity_type='GoodsReceipt',
        entity_id=receipt.id,
        metadata={'purchase_order_id': po.id, 'purchase_order_status': po.status.value, 'credited': credited},
    )
    logger.info('Goods receipt %s credited stock for %s part(s); purchase order %s is %s', receipt.id, len(credited), po.id, po.status.value)
    return True


def get_goods_receipt(db: Session, receipt_id: str) -> GoodsReceipt:
    receipt = db.execute(select(GoodsReceipt).where(GoodsReceipt.id == receipt_id)).scalar_one_or_none()
    if receipt is None:
        raise NotFoundError(f'Goods receipt {receipt_id} not found')
    return receipt


def get_goods_receipt_items(db: Session, receipt_id: str) -> list[GoodsReceiptItem]:
    return db.execute(
        select(GoodsReceiptItem)
        .where(GoodsReceiptItem.receipt_id == receipt_id)
        .order_by(GoodsReceiptItem.position.asc())
    ).scalars().all()


def list_goods_receipts(db: Session, *, purchase_order_id: str | None = None) -> list[GoodsReceipt]:
    query = select(GoodsReceipt).order_by(GoodsReceipt.created_at.desc())
    if purchase_order_id is not None:
        query = query.where(GoodsReceipt.purchase_order_id == purchase_order_id)
    return db.execute(query).scalars().all()


def create_goods_receipt(
    db: Session,
    *,
    purchase_order_id: str,
    received_by_user_id: str,
    items: list[ReceiptLineInput] | None = None,
    status: GoodsReceiptStatus = GoodsReceiptStatus.PENDING,
    received_date: date | None = None,
    notes: str | None = None,
    discrepancies: str | None = None,
) -> GoodsReceipt:
    po = get_purchase_order(db, purchase_order_id)
    _ensure_receivable(po)
    lines = items if items is not None else _default_lines(db, po)

    receipt = GoodsReceipt(
        purchase_order_id=po.id,
        supplier_id=po.supplier_id,
        status=status,
        received_date=received_date or date.today(),
        received_by_user_id=received_by_user_id,
        notes=notes,
        discrepancies=discrepancies,
    )
    db.add(receipt)
    db.flush()
    db.add_all(_build_items(receipt.id, get_purchase_order_items(db, po.id), lines))
    db.flush()

    if status == GoodsReceiptStatus.COMPLETED:
        _credit_inventory(db, receipt, actor_user_id=received_by_user_id)
    logger.info('Created goods receipt %s for purchase order %s as %s', receipt.id, po.id, status.value)
    return receipt


def update_goods_receipt(
    db: Session,
    *,
    receipt_id: str,
    status: GoodsReceiptStatus | None = None,
    items: list[ReceiptLineInput] | None = None,
    received_date: date | None = None,
    notes: str | None = None,
    discrepancies: str | None = None,
    actor_user_id: str | None = None,
) -> GoodsReceipt:
    receipt = get_goods_receipt(db, receipt_id)
    previous_status = receipt.status
    new_status = status if status is not None else previous_status

    if items is not None:
        if receipt.stock_credited_at is not None:
            raise InvalidStateError('Items of a receipt that already credited stock cannot be edited')
        rows = _build_items(receipt.id, get_purchase_order_items(db, receipt.purchase_order_id), items)
        db.execute(delete(GoodsReceiptItem).where(GoodsReceiptItem.receipt_id == receipt.id))
        db.add_all(rows)

    if received_date is not None:
        receipt.received_date = received_date
    if notes is not None:
        receipt.notes = notes
    if discrepancies is not None:
        receipt.discrepancies = discrepancies
    receipt.updated_at = _now()
    db.flush()

    # The new status is stored only after a successful credit.
    if previous_status != GoodsReceiptStatus.COMPLETED and new_status == GoodsReceiptStatus.COMPLETED:
        _credit_inventory(db, receipt, actor_user_id=actor_user_id)
    receipt.status = new_status
    db.flush()

    if previous_status == GoodsReceiptStatus.COMPLETED and new_status != GoodsReceiptStatus.COMPLETED:
        # Stock already credited stays credited; reversal needs an explicit stock adjustment.
        logger.warning(
            'Goods receipt %s moved from Completed to %s; stock is not reverted',
            receipt.id,
            new_status.value,
        )
        log_audit(
            db,
            actor_user_id=actor_user_id,
            action='GOODS_RECEIPT_REOPENED',
            entity_type='GoodsReceipt',
            entity_id=receipt.id,
            metadata={'to': new_status.value, 'stock_reverted': False},
        )
    return receipt
