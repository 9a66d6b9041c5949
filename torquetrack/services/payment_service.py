from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from torquetrack.errors import NotFoundError, ValidationError
from torquetrack.models import OrderType, Payment, PaymentMethod
from torquetrack.services.audit_service import log_audit
from torquetrack.services.document_math_service import to_money
from torquetrack.services.order_service import add_payment

logger = logging.getLogger(__name__)


def _parse_method(method: PaymentMethod | str) -> PaymentMethod:
    try:
        return PaymentMethod(method)
    except ValueError as exc:
        raise ValidationError(f'Unknown payment method: {method}') from exc


def record_payment(
    db: Session,
    *,
    order_type: OrderType,
    order_id: str,
    amount: Decimal,
    method: PaymentMethod | str,
    processed_by_user_id: str,
    payment_date: date | None = None,
    notes: str | None = None,
    payment_id: str | None = None,
):
    """Record a payment against a job or sales order.

    Returns ``(order, payment)``. Replaying the same ``payment_id`` leaves the
    order unchanged and returns the payment that was stored first.
    """
    try:
        order_type = OrderType(order_type)
    except ValueError as exc:
        raise ValidationError(f'Unknown order type: {order_type}') from exc
    value = to_money(amount)
    if value <= 0:
        raise ValidationError('Payment amount must be positive')

    payment = Payment(
        order_id=order_id,
        order_type=order_type,
        amount=value,
        payment_date=payment_date or date.today(),
        method=_parse_method(method),
        notes=notes,
        processed_by_user_id=processed_by_user_id,
    )
    if payment_id:
        payment.id = payment_id
    existing = db.get(Payment, payment_id) if payment_id else None
    order = add_payment(db, order_type=order_type, order_id=order_id, payment=payment)
    if existing is not None:
        return order, existing

    log_audit(
        db,
        actor_user_id=processed_by_user_id,
        action='PAYMENT_RECORDED',
        entity_type=order_type.value,
        entity_id=order.id,
        metadata={'payment_id': payment.id, 'amount': str(value), 'method': payment.method.value},
    )
    logger.info(
        'Recorded %s payment %s of %s on %s %s; status is now %s',
        payment.method.value,
        payment.id,
        value,
        order_type.value,
        order.id,
        order.payment_status.value,
    )
    return order, payment


def get_payment(db: Session, payment_id: str) -> Payment:
    payment = db.execute(select(Payment).where(Payment.id == payment_id)).scalar_one_or_none()
    if payment is None:
        raise NotFoundError(f'Payment {payment_id} not found')
    return payment


def list_payments(
    db: Session,
    *,
    order_type: OrderType | None = None,
    order_id: str | None = None,
    method: PaymentMethod | None = None,
) -> list[Payment]:
    query = select(Payment).order_by(Payment.payment_date.desc(), Payment.created_at.desc())
    if order_type is not None:
        query = query.where(Payment.order_type == OrderType(order_type))
    if order_id is not None:
        query = query.where(Payment.order_id == order_id)
    if method is not None:
        query = query.where(Payment.method == _parse_method(method))
    return db.execute(query).scalars().all()
