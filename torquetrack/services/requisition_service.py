from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from torquetrack.errors import InvalidStateError, NotFoundError, ValidationError
from torquetrack.models import PurchaseOrder, PurchaseRequisition, PurchaseRequisitionItem, PurchaseRequisitionStatus
from torquetrack.services.audit_service import log_audit
from torquetrack.services.document_math_service import ZERO, to_money, validate_quantity
from torquetrack.services.inventory_service import get_part

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = {PurchaseRequisitionStatus.DRAFT, PurchaseRequisitionStatus.PENDING_APPROVAL}
INITIAL_STATUSES = EDITABLE_STATUSES


@dataclass(frozen=True)
class RequisitionItemInput:
    description: str
    quantity: int
    part_id: str | None = None
    estimated_price_per_unit: Decimal | None = None
    notes: str | None = None


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _estimated_value(items: list[PurchaseRequisitionItem]) -> Decimal:
    return to_money(sum((item.quantity * (item.estimated_price_per_unit or ZERO) for item in items), ZERO))


def _build_items(db: Session, requisition_id: str, items: list[RequisitionItemInput]) -> list[PurchaseRequisitionItem]:
    if not items:
        raise ValidationError('A requisition needs at least one item')
    rows: list[PurchaseRequisitionItem] = []
    for idx, item in enumerate(items):
        validate_quantity(item.quantity)
        description = (item.description or '').strip()
        if item.part_id:
            part = get_part(db, item.part_id)
            description = description or part.name
        if not description:
            raise ValidationError('Item description is required')
        price = None
        if item.estimated_price_per_unit is not None:
            price = to_money(item.estimated_price_per_unit)
            if price < 0:
                raise ValidationError('Estimated price cannot be negative')
        rows.append(
            PurchaseRequisitionItem(
                requisition_id=requisition_id,
                position=idx,
                part_id=item.part_id or None,
                description=description,
                quantity=item.quantity,
                estimated_price_per_unit=price,
                notes=item.notes,
            )
        )
    return rows


def get_requisition(db: Session, requisition_id: str) -> PurchaseRequisition:
    requisition = db.execute(
        select(PurchaseRequisition).where(PurchaseRequisition.id == requisition_id)
    ).scalar_one_or_none()
    if requisition is None:
        raise NotFoundError(f'Requisition {requisition_id} not found')
    return requisition


def get_requisition_items(db: Session, requisition_id: str) -> list[PurchaseRequisitionItem]:
    return db.execute(
        select(PurchaseRequisitionItem)
        .where(PurchaseRequisitionItem.requisition_id == requisition_id)
        .order_by(PurchaseRequisitionItem.position.asc())
    ).scalars().all()


def list_requisitions(db: Session, *, status: PurchaseRequisitionStatus | None = None) -> list[PurchaseRequisition]:
    query = select(PurchaseRequisition).order_by(PurchaseRequisition.created_at.desc())
    if status is not None:
        query = query.where(PurchaseRequisition.status == status)
    return db.execute(query).scalars().all()


def create_requisition(
    db: Session,
    *,
    items: list[RequisitionItemInput],
    requested_by_user_id: str,
    department: str | None = None,
    notes: str | None = None,
    status: PurchaseRequisitionStatus = PurchaseRequisitionStatus.DRAFT,
) -> PurchaseRequisition:
    if status not in INITIAL_STATUSES:
        raise ValidationError('New requisitions start as Draft or Pending Approval')

    requisition = PurchaseRequisition(
        requested_by_user_id=requested_by_user_id,
        department=department,
        notes=notes,
        status=status,
    )
    db.add(requisition)
    db.flush()

    rows = _build_items(db, requisition.id, items)
    db.add_all(rows)
    requisition.total_estimated_value = _estimated_value(rows)
    db.flush()
    logger.info('Created requisition %s with %s item(s)', requisition.id, len(rows))
    return requisition


def update_requisition(
    db: Session,
    *,
    requisition_id: str,
    items: list[RequisitionItemInput] | None = None,
    department: str | None = None,
    notes: str | None = None,
) -> PurchaseRequisition:
    requisition = get_requisition(db, requisition_id)
    if items is not None:
        if requisition.status not in EDITABLE_STATUSES:
            raise InvalidStateError(f'Items of a {requisition.status.value} requisition cannot be edited')
        rows = _build_items(db, requisition.id, items)
        db.execute(delete(PurchaseRequisitionItem).where(PurchaseRequisitionItem.requisition_id == requisition.id))
        db.add_all(rows)
    elif requisition.status == PurchaseRequisitionStatus.ORDERED:
        raise InvalidStateError('An ordered requisition cannot be edited')

    if department is not None:
        requisition.department = department
    if notes is not None:
        requisition.notes = notes
    db.flush()
    # Always derived from the stored items, never taken from the caller.
    requisition.total_estimated_value = _estimated_value(get_requisition_items(db, requisition.id))
    requisition.updated_at = _now()
    db.flush()
    return requisition


def transition_requisition_status(
    db: Session,
    *,
    requisition_id: str,
    status: PurchaseRequisitionStatus,
    approver_user_id: str | None = None,
) -> PurchaseRequisition:
    requisition = get_requisition(db, requisition_id)
    if requisition.status == PurchaseRequisitionStatus.ORDERED:
        raise InvalidStateError('An ordered requisition cannot change status')
    if status == PurchaseRequisitionStatus.ORDERED:
        raise InvalidStateError('Requisitions become Ordered only when a purchase order is created from them')

    previous = requisition.status
    requisition.status = status
    if status == PurchaseRequisitionStatus.APPROVED:
        if approver_user_id:
            requisition.approved_by_user_id = approver_user_id
        if requisition.approved_date is None:
            requisition.approved_date = _now()
    requisition.updated_at = _now()
    log_audit(
        db,
        actor_user_id=approver_user_id,
        action='REQUISITION_STATUS_CHANGED',
        entity_type='PurchaseRequisition',
        entity_id=requisition.id,
        metadata={'from': previous.value, 'to': status.value},
    )
    db.flush()
    return requisition


def mark_requisition_ordered(db: Session, *, requisition_id: str) -> PurchaseRequisition:
    requisition = get_requisition(db, requisition_id)
    if requisition.status != PurchaseRequisitionStatus.APPROVED:
        raise InvalidStateError(f'Only approved requisitions can be ordered (status is {requisition.status.value})')
    requisition.status = PurchaseRequisitionStatus.ORDERED
    requisition.updated_at = _now()
    db.flush()
    return requisition


def delete_requisition(db: Session, *, requisition_id: str) -> None:
    requisition = get_requisition(db, requisition_id)
    if requisition.status == PurchaseRequisitionStatus.ORDERED:
        raise InvalidStateError('An ordered requisition cannot be deleted')
    linked = db.execute(
        select(PurchaseOrder.id).where(PurchaseOrder.purchase_requisition_id == requisition.id).limit(1)
    ).first()
    if linked:
        raise InvalidStateError('Requisition is referenced by a purchase order')
    db.execute(delete(PurchaseRequisitionItem).where(PurchaseRequisitionItem.requisition_id == requisition.id))
    db.delete(requisition)
    db.flush()
