from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from torquetrack.config import settings
from torquetrack.errors import InvalidStateError, NotFoundError, ValidationError
from torquetrack.models import (
    GoodsReceipt,
    GoodsReceiptItem,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    PurchaseRequisitionStatus,
)
from torquetrack.services.audit_service import log_audit
from torquetrack.services.directory_service import get_supplier
from torquetrack.services.document_math_service import (
    ZERO,
    LineAmount,
    compute_line_total,
    compute_purchase_order_totals,
    to_money,
)
from torquetrack.services.inventory_service import get_part
from torquetrack.services.requisition_service import get_requisition, get_requisition_items, mark_requisition_ordered

logger = logging.getLogger(__name__)

RECEIVED_STATUSES = {PurchaseOrderStatus.PARTIALLY_RECEIVED, PurchaseOrderStatus.FULLY_RECEIVED}
RECEIVABLE_STATUSES = {PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.PARTIALLY_RECEIVED}
ITEM_LOCKED_STATUSES = RECEIVED_STATUSES | {PurchaseOrderStatus.CLOSED, PurchaseOrderStatus.CANCELLED}
MANUAL_STATUSES = {
    PurchaseOrderStatus.DRAFT,
    PurchaseOrderStatus.PENDING_APPROVAL,
    PurchaseOrderStatus.APPROVED,
    PurchaseOrderStatus.CLOSED,
    PurchaseOrderStatus.CANCELLED,
}

# Distinguishes "leave the tax alone" from an explicit ``None`` (switch back to the fallback rate).
KEEP = object()


@dataclass(frozen=True)
class PurchaseOrderLineInput:
    quantity: int
    unit_price: Decimal
    description: str = ''
    part_id: str | None = None
    total_price: Decimal | None = None


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _build_items(db: Session, purchase_order_id: str, items: list[PurchaseOrderLineInput]) -> list[PurchaseOrderItem]:
    if not items:
        raise ValidationError('A purchase order needs at least one item')
    rows: list[PurchaseOrderItem] = []
    for idx, item in enumerate(items):
        total = compute_line_total(LineAmount(item.quantity, item.unit_price, item.total_price))
        description = (item.description or '').strip()
        part_name = None
        if item.part_id:
            part = get_part(db, item.part_id)
            part_name = part.name
            description = description or part.name
        if not description:
            raise ValidationError('Item description is required')
        rows.append(
            PurchaseOrderItem(
                purchase_order_id=purchase_order_id,
                position=idx,
                part_id=item.part_id or None,
                part_name=part_name,
                description=description,
                quantity=item.quantity,
                unit_price=to_money(item.unit_price),
                total_price=total,
            )
        )
    return rows


def _apply_totals(
    po: PurchaseOrder,
    items: list[PurchaseOrderItem],
    *,
    tax_amount: Decimal | None,
    fallback_tax_rate: Decimal | None,
) -> None:
    totals = compute_purchase_order_totals(
        [LineAmount(item.quantity, item.unit_price, item.total_price) for item in items],
        tax_amount=tax_amount,
        shipping_cost=po.shipping_cost,
        fallback_tax_rate=(
            fallback_tax_rate if fallback_tax_rate is not None else settings.purchase_order_fallback_tax_rate
        ),
    )
    po.sub_total = totals.sub_total
    po.tax_amount = totals.tax_amount
    po.tax_is_explicit = totals.tax_is_explicit
    po.shipping_cost = totals.shipping_cost
    po.grand_total = totals.grand_total


def get_purchase_order(db: Session, purchase_order_id: str) -> PurchaseOrder:
    po = db.execute(select(PurchaseOrder).where(PurchaseOrder.id == purchase_order_id)).scalar_one_or_none()
    if po is None:
        raise NotFoundError(f'Purchase order {purchase_order_id} not found')
    return po


def get_purchase_order_items(db: Session, purchase_order_id: str) -> list[PurchaseOrderItem]:
    return db.execute(
        select(PurchaseOrderItem)
        .where(PurchaseOrderItem.purchase_order_id == purchase_order_id)
        .order_by(PurchaseOrderItem.position.asc())
    ).scalars().all()


def list_purchase_orders(db: Session, *, status: PurchaseOrderStatus | None = None) -> list[PurchaseOrder]:
    query = select(PurchaseOrder).order_by(PurchaseOrder.created_at.desc())
    if status is not None:
        query = query.where(PurchaseOrder.status == status)
    return db.execute(query).scalars().all()


def list_receivable_purchase_orders(db: Session) -> list[PurchaseOrder]:
    return db.execute(
        select(PurchaseOrder)
        .where(PurchaseOrder.status.in_(RECEIVABLE_STATUSES))
        .order_by(PurchaseOrder.created_at.asc())
    ).scalars().all()


def create_purchase_order(
    db: Session,
    *,
    supplier_id: str,
    items: list[PurchaseOrderLineInput],
    created_by_user_id: str,
    tax_amount: Decimal | None = None,
    shipping_cost: Decimal | None = None,
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT,
    purchase_requisition_id: str | None = None,
    order_date: date | None = None,
    expected_delivery_date: date | None = None,
    payment_terms: str | None = None,
    shipping_address: str | None = None,
    billing_address: str | None = None,
    notes: str | None = None,
    fallback_tax_rate: Decimal | None = None,
) -> PurchaseOrder:
    get_supplier(db, supplier_id)
    if status not in MANUAL_STATUSES:
        raise ValidationError(f'A purchase order cannot be created as {status.value}')
    if purchase_requisition_id:
        requisition = get_requisition(db, purchase_requisition_id)
        if requisition.status != PurchaseRequisitionStatus.APPROVED:
            raise InvalidStateError(
                f'Only approved requisitions can be ordered (status is {requisition.status.value})'
            )

    po = PurchaseOrder(
        supplier_id=supplier_id,
        purchase_requisition_id=purchase_requisition_id or None,
        status=status,
        order_date=order_date or date.today(),
        expected_delivery_date=expected_delivery_date,
        shipping_cost=shipping_cost if shipping_cost is not None else ZERO,
        payment_terms=payment_terms,
        shipping_address=shipping_address,
        billing_address=billing_address,
        notes=notes,
        created_by_user_id=created_by_user_id,
    )
    db.add(po)
    db.flush()

    rows = _build_items(db, po.id, items)
    db.add_all(rows)
    _apply_totals(po, rows, tax_amount=tax_amount, fallback_tax_rate=fallback_tax_rate)
    db.flush()

    if purchase_requisition_id:
        mark_requisition_ordered(db, requisition_id=purchase_requisition_id)

    log_audit(
        db,
        actor_user_id=created_by_user_id,
        action='PURCHASE_ORDER_CREATED',
        entity_type='PurchaseOrder',
        entity_id=po.id,
        metadata={'grand_total': str(po.grand_total), 'purchase_requisition_id': purchase_requisition_id},
    )
    logger.info('Created purchase order %s for supplier %s, grand total %s', po.id, supplier_id, po.grand_total)
    return po


def create_purchase_order_from_requisition(
    db: Session,
    *,
    requisition_id: str,
    supplier_id: str,
    created_by_user_id: str,
    tax_amount: Decimal | None = None,
    shipping_cost: Decimal | None = None,
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT,
    expected_delivery_date: date | None = None,
    notes: str | None = None,
) -> PurchaseOrder:
    requisition = get_requisition(db, requisition_id)
    if requisition.status != PurchaseRequisitionStatus.APPROVED:
        raise InvalidStateError(f'Only approved requisitions can be ordered (status is {requisition.status.value})')

    lines: list[PurchaseOrderLineInput] = []
    for item in get_requisition_items(db, requisition.id):
        unit_price = item.estimated_price_per_unit
        if unit_price is None and item.part_id:
            unit_price = get_part(db, item.part_id).cost
        lines.append(
            PurchaseOrderLineInput(
                quantity=item.quantity,
                unit_price=unit_price if unit_price is not None else ZERO,
                description=item.description,
                part_id=item.part_id,
            )
        )
    return create_purchase_order(
        db,
        supplier_id=supplier_id,
        items=lines,
        created_by_user_id=created_by_user_id,
        tax_amount=tax_amount,
        shipping_cost=shipping_cost,
        status=status,
        purchase_requisition_id=requisition.id,
        expected_delivery_date=expected_delivery_date,
        notes=notes if notes is not None else requisition.notes,
    )


def update_purchase_order(
    db: Session,
    *,
    purchase_order_id: str,
    items: list[PurchaseOrderLineInput] | None = None,
    tax_amount=KEEP,
    shipping_cost: Decimal | None = None,
    status: PurchaseOrderStatus | None = None,
    expected_delivery_date: date | None = None,
    payment_terms: str | None = None,
    notes: str | None = None,
    fallback_tax_rate: Decimal | None = None,
) -> PurchaseOrder:
    """Save changes to a purchase order and re-derive its totals.

    ``sub_total``, ``tax_amount`` and ``grand_total`` are always recomputed
    from the stored items. Pass ``tax_amount=None`` to drop an explicit tax and
    return to the fallback rate; omit it to keep the current behaviour.
    """
    po = get_purchase_order(db, purchase_order_id)

    if status is not None and status != po.status:
        if status not in MANUAL_STATUSES:
            raise InvalidStateError(f'{status.value} is set by goods receipts, not by editing the order')
        if po.status in RECEIVED_STATUSES and status != PurchaseOrderStatus.CLOSED:
            raise InvalidStateError(f'A {po.status.value} purchase order can only be closed')

    if items is not None:
        if po.status in ITEM_LOCKED_STATUSES:
            raise InvalidStateError(f'Items of a {po.status.value} purchase order cannot be edited')
        # Receipt lines point at the current item ids.
        has_receipts = db.execute(
            select(GoodsReceipt.id).where(GoodsReceipt.purchase_order_id == po.id).limit(1)
        ).first()
        if has_receipts is not None:
            raise InvalidStateError('Items cannot be edited while goods receipts exist for this purchase order')
        rows = _build_items(db, po.id, items)
        db.execute(delete(PurchaseOrderItem).where(PurchaseOrderItem.purchase_order_id == po.id))
        db.add_all(rows)

    if status is not None:
        po.status = status
    if shipping_cost is not None:
        po.shipping_cost = shipping_cost
    if expected_delivery_date is not None:
        po.expected_delivery_date = expected_delivery_date
    if payment_terms is not None:
        po.payment_terms = payment_terms
    if notes is not None:
        po.notes = notes
    db.flush()

    if tax_amount is KEEP:
        tax_amount = po.tax_amount if po.tax_is_explicit else None
    _apply_totals(po, get_purchase_order_items(db, po.id), tax_amount=tax_amount, fallback_tax_rate=fallback_tax_rate)
    po.updated_at = _now()
    db.flush()
    return po


def set_received_status(db: Session, *, purchase_order_id: str, fully_received: bool) -> PurchaseOrder:
    po = get_purchase_order(db, purchase_order_id)
    po.status = PurchaseOrderStatus.FULLY_RECEIVED if fully_received else PurchaseOrderStatus.PARTIALLY_RECEIVED
    po.updated_at = _now()
    db.flush()
    return po


def delete_purchase_order(db: Session, *, purchase_order_id: str) -> None:
    po = get_purchase_order(db, purchase_order_id)
    if po.status in RECEIVED_STATUSES:
        raise InvalidStateError(f'A {po.status.value} purchase order cannot be deleted')
    receipt_ids = db.execute(select(GoodsReceipt.id).where(GoodsReceipt.purchase_order_id == po.id)).scalars().all()
    if receipt_ids:
        db.execute(delete(GoodsReceiptItem).where(GoodsReceiptItem.receipt_id.in_(receipt_ids)))
        db.execute(delete(GoodsReceipt).where(GoodsReceipt.id.in_(receipt_ids)))
    db.execute(delete(PurchaseOrderItem).where(PurchaseOrderItem.purchase_order_id == po.id))
    db.delete(po)
    db.flush()
    logger.info('Deleted purchase order %s', purchase_order_id)
