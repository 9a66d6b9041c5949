from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from torquetrack.config import settings
from torquetrack.errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from torquetrack.models import (
    JobOrder,
    JobOrderPartLine,
    JobOrderServiceLine,
    JobOrderStatus,
    OrderType,
    Payment,
    PaymentMethod,
    PaymentStatus,
    SalesOrder,
    SalesOrderLine,
    SalesOrderStatus,
)
from torquetrack.services.audit_service import log_audit
from torquetrack.services.directory_service import (
    WALK_IN_CUSTOMER_NAME,
    customer_display_name,
    get_assignable_mechanic,
    get_customer,
    get_customer_motorcycle,
    get_shop_service,
)
from torquetrack.services.document_math_service import (
    ZERO,
    LineAmount,
    balance_due,
    compute_line_total,
    compute_order_totals,
    derive_payment_status,
    to_money,
)
from torquetrack.services.inventory_service import adjust_stock, get_part

logger = logging.getLogger(__name__)

ORDER_MODELS = {
    OrderType.JOB_ORDER: JobOrder,
    OrderType.SALES_ORDER: SalesOrder,
}
CLOSED_ORDER_STATUSES = {JobOrderStatus.CANCELLED, SalesOrderStatus.CANCELLED}


@dataclass(frozen=True)
class ServiceLineInput:
    service_id: str | None = None
    service_name: str | None = None
    labor_cost: Decimal | None = None
    assigned_mechanic_id: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PartLineInput:
    part_id: str
    quantity: int
    price_per_unit: Decimal | None = None
    total_price: Decimal | None = None


@dataclass(frozen=True)
class _ResolvedPartLine:
    part_id: str
    part_name: str
    quantity: int
    price_per_unit: Decimal
    total_price: Decimal


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _resolve_service_lines(db: Session, services: list[ServiceLineInput]) -> list[JobOrderServiceLine]:
    rows = []
    for idx, line in enumerate(services):
        name = (line.service_name or '').strip()
        labor_cost = line.labor_cost
        if line.service_id:
            service = get_shop_service(db, line.service_id)
            name = name or service.name
            if labor_cost is None:
                labor_cost = service.default_labor_cost
        if not name:
            raise ValidationError('Service name is required')
        if labor_cost is None:
            raise ValidationError(f'Labor cost is required for {name}')
        if line.assigned_mechanic_id:
            get_assignable_mechanic(db, line.assigned_mechanic_id)
        rows.append(
            JobOrderServiceLine(
                position=idx,
                service_id=line.service_id or None,
                service_name=name,
                labor_cost=to_money(labor_cost),
                assigned_mechanic_id=line.assigned_mechanic_id or None,
                notes=line.notes,
            )
        )
    return rows


def _resolve_part_lines(db: Session, parts: list[PartLineInput]) -> list[_ResolvedPartLine]:
    resolved = []
    for line in parts:
        part = get_part(db, line.part_id)
        if not part.is_active:
            raise InvalidStateError(f'Part {part.name} is inactive')
        price = line.price_per_unit if line.price_per_unit is not None else part.price
        total = compute_line_total(LineAmount(line.quantity, price, line.total_price))
        resolved.append(
            _ResolvedPartLine(
                part_id=part.id,
                part_name=part.name,
                quantity=line.quantity,
                price_per_unit=to_money(price),
                total_price=total,
            )
        )
    return resolved


def _debit_inventory(db: Session, lines: list[_ResolvedPartLine]) -> None:
    """Debit stock for every part line; undo the earlier debits if one fails."""
    applied: list[_ResolvedPartLine] = []
    try:
        for line in lines:
            adjust_stock(db, part_id=line.part_id, delta=-line.quantity)
            applied.append(line)
    except InsufficientStockError:
        for line in applied:
            adjust_stock(db, part_id=line.part_id, delta=line.quantity)
        raise


def _resolve_tax_rate(tax_rate: Decimal | None) -> Decimal:
    return Decimal(str(tax_rate)) if tax_rate is not None else settings.default_tax_rate


def _check_initial_payment_status(payment_status: PaymentStatus) -> None:
    if payment_status == PaymentStatus.REFUNDED:
        raise ValidationError('An order cannot be created as Refunded')


def _get_order_row(db: Session, order_type: OrderType, order_id: str) -> JobOrder | SalesOrder:
    model = ORDER_MODELS[OrderType(order_type)]
    order = db.execute(select(model).where(model.id == order_id)).scalar_one_or_none()
    if order is None:
        label = 'Job order' if model is JobOrder else 'Sales order'
        raise NotFoundError(f'{label} {order_id} not found')
    return order


def _refresh_payment_state(db: Session, order: JobOrder | SalesOrder, order_type: OrderType) -> None:
    total_paid = db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.order_id == order.id,
            Payment.order_type == order_type,
        )
    ).scalar_one()
    order.amount_paid = to_money(total_paid)
    order.payment_status = derive_payment_status(to_money(order.grand_total), order.amount_paid)
    db.flush()


def _seed_initial_payment(
    db: Session,
    order: JobOrder | SalesOrder,
    order_type: OrderType,
    *,
    method: PaymentMethod,
    notes: str | None,
    processed_by_user_id: str,
) -> None:
    if order.grand_total <= 0:
        return
    db.add(
        Payment(
            order_id=order.id,
            order_type=order_type,
            amount=order.grand_total,
            payment_date=date.today(),
            method=PaymentMethod(method),
            notes=notes or 'Initial payment',
            processed_by_user_id=processed_by_user_id,
        )
    )
    db.flush()


def create_job_order(
    db: Session,
    *,
    customer_id: str,
    created_by_user_id: str,
    services: list[ServiceLineInput] | None = None,
    parts: list[PartLineInput] | None = None,
    motorcycle_id: str | None = None,
    status: JobOrderStatus = JobOrderStatus.PENDING,
    diagnostics: str | None = None,
    estimated_completion_date: date | None = None,
    discount_amount: Decimal | None = None,
    tax_amount: Decimal | None = None,
    tax_rate: Decimal | None = None,
    payment_status: PaymentStatus = PaymentStatus.UNPAID,
    initial_payment_method: PaymentMethod = PaymentMethod.CASH,
    initial_payment_notes: str | None = None,
) -> JobOrder:
    _check_initial_payment_status(payment_status)
    customer = get_customer(db, customer_id)
    if motorcycle_id:
        get_customer_motorcycle(db, motorcycle_id=motorcycle_id, customer_id=customer.id)
    service_rows = _resolve_service_lines(db, services or [])
    part_lines = _resolve_part_lines(db, parts or [])
    totals = compute_order_totals(
        labor_costs=[row.labor_cost for row in service_rows],
        part_lines=[LineAmount(line.quantity, line.price_per_unit, line.total_price) for line in part_lines],
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        tax_rate=_resolve_tax_rate(tax_rate),
    )

    _debit_inventory(db, part_lines)

    order = JobOrder(
        customer_id=customer.id,
        customer_name=customer_display_name(customer),
        motorcycle_id=motorcycle_id or None,
        status=status,
        diagnostics=diagnostics,
        estimated_completion_date=estimated_completion_date,
        actual_completion_date=date.today() if status == JobOrderStatus.COMPLETED else None,
        labor_total=totals.labor_total,
        parts_total=totals.parts_total,
        discount_amount=totals.discount_amount,
        tax_amount=totals.tax_amount,
        grand_total=totals.grand_total,
        amount_paid=ZERO,
        payment_status=PaymentStatus.UNPAID,
        created_by_user_id=created_by_user_id,
    )
    db.add(order)
    db.flush()
    for row in service_rows:
        row.job_order_id = order.id
    db.add_all(service_rows)
    db.add_all(
        [
            JobOrderPartLine(
                job_order_id=order.id,
                position=idx,
                part_id=line.part_id,
                part_name=line.part_name,
                quantity=line.quantity,
                price_per_unit=line.price_per_unit,
                total_price=line.total_price,
            )
            for idx, line in enumerate(part_lines)
        ]
    )
    db.flush()

    if payment_status == PaymentStatus.PAID:
        _seed_initial_payment(
            db,
            order,
            OrderType.JOB_ORDER,
            method=initial_payment_method,
            notes=initial_payment_notes,
            processed_by_user_id=created_by_user_id,
        )
    _refresh_payment_state(db, order, OrderType.JOB_ORDER)
    log_audit(
        db,
        actor_user_id=created_by_user_id,
        action='JOB_ORDER_CREATED',
        entity_type='JobOrder',
        entity_id=order.id,
        metadata={'grand_total': str(order.grand_total), 'parts_debited': len(part_lines)},
    )
    logger.info('Created job order %s for %s, grand total %s', order.id, order.customer_name, order.grand_total)
    return order


def create_sales_order(
    db: Session,
    *,
    items: list[PartLineInput],
    created_by_user_id: str,
    customer_id: str | None = None,
    status: SalesOrderStatus = SalesOrderStatus.COMPLETED,
    discount_amount: Decimal | None = None,
    tax_amount: Decimal | None = None,
    tax_rate: Decimal | None = None,
    payment_status: PaymentStatus = PaymentStatus.PAID,
    initial_payment_method: PaymentMethod = PaymentMethod.CASH,
    initial_payment_notes: str | None = None,
    notes: str | None = None,
) -> SalesOrder:
    _check_initial_payment_status(payment_status)
    if not items:
        raise ValidationError('A sale needs at least one item')
    customer_name = WALK_IN_CUSTOMER_NAME
    if customer_id:
        customer_name = customer_display_name(get_customer(db, customer_id))
    lines = _resolve_part_lines(db, items)
    totals = compute_order_totals(
        labor_costs=[],
        part_lines=[LineAmount(line.quantity, line.price_per_unit, line.total_price) for line in lines],
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        tax_rate=_resolve_tax_rate(tax_rate),
    )

    _debit_inventory(db, lines)

    order = SalesOrder(
        customer_id=customer_id or None,
        customer_name=customer_name,
        status=status,
        items_total=totals.parts_total,
        discount_amount=totals.discount_amount,
        tax_amount=totals.tax_amount,
        grand_total=totals.grand_total,
        amount_paid=ZERO,
        payment_status=PaymentStatus.UNPAID,
        notes=notes,
        created_by_user_id=created_by_user_id,
    )
    db.add(order)
    db.flush()
    db.add_all(
        [
            SalesOrderLine(
                sales_order_id=order.id,
                position=idx,
                part_id=line.part_id,
                part_name=line.part_name,
                quantity=line.quantity,
                price_per_unit=line.price_per_unit,
                total_price=line.total_price,
            )
            for idx, line in enumerate(lines)
        ]
    )
    db.flush()

    if payment_status == PaymentStatus.PAID:
        _seed_initial_payment(
            db,
            order,
            OrderType.SALES_ORDER,
            method=initial_payment_method,
            notes=initial_payment_notes or 'Payment for direct sale',
            processed_by_user_id=created_by_user_id,
        )
    _refresh_payment_state(db, order, OrderType.SALES_ORDER)
    log_audit(
        db,
        actor_user_id=created_by_user_id,
        action='SALES_ORDER_CREATED',
        entity_type='SalesOrder',
        entity_id=order.id,
        metadata={'grand_total': str(order.grand_total), 'customer_name': customer_name},
    )
    logger.info('Created sales order %s for %s, grand total %s', order.id, customer_name, order.grand_total)
    return order


def get_order(db: Session, *, order_type: OrderType, order_id: str) -> JobOrder | SalesOrder:
    """Load an order with ``amount_paid`` and ``payment_status`` recomputed from its payments.

    The stored values are only a cache; every read refreshes them.
    """
    order_type = OrderType(order_type)
    order = _get_order_row(db, order_type, order_id)
    _refresh_payment_state(db, order, order_type)
    return order


def get_payment_history(db: Session, *, order_type: OrderType, order_id: str) -> list[Payment]:
    return db.execute(
        select(Payment)
        .where(Payment.order_id == order_id, Payment.order_type == OrderType(order_type))
        .order_by(Payment.payment_date.asc(), Payment.created_at.asc())
    ).scalars().all()


def get_job_order_lines(db: Session, job_order_id: str) -> tuple[list[JobOrderServiceLine], list[JobOrderPartLine]]:
    services = db.execute(
        select(JobOrderServiceLine)
        .where(JobOrderServiceLine.job_order_id == job_order_id)
        .order_by(JobOrderServiceLine.position.asc())
    ).scalars().all()
    parts = db.execute(
        select(JobOrderPartLine)
        .where(JobOrderPartLine.job_order_id == job_order_id)
        .order_by(JobOrderPartLine.position.asc())
    ).scalars().all()
    return services, parts


def get_sales_order_lines(db: Session, sales_order_id: str) -> list[SalesOrderLine]:
    return db.execute(
        select(SalesOrderLine)
        .where(SalesOrderLine.sales_order_id == sales_order_id)
        .order_by(SalesOrderLine.position.asc())
    ).scalars().all()


def get_order_lines(db: Session, *, order_type: OrderType, order_id: str) -> dict:
    order_type = OrderType(order_type)
    order = _get_order_row(db, order_type, order_id)
    if order_type == OrderType.JOB_ORDER:
        services, parts = get_job_order_lines(db, order.id)
        return {'services': services, 'parts': parts}
    return {'items': get_sales_order_lines(db, order.id)}


def order_balance_due(db: Session, *, order_type: OrderType, order_id: str) -> Decimal:
    order = get_order(db, order_type=order_type, order_id=order_id)
    return balance_due(order.grand_total, order.amount_paid)


def get_order_detail(db: Session, *, order_type: OrderType, order_id: str) -> dict:
    order_type = OrderType(order_type)
    order = get_order(db, order_type=order_type, order_id=order_id)
    detail = {
        'order': order,
        'order_type': order_type.value,
        'payment_history': get_payment_history(db, order_type=order_type, order_id=order.id),
        'balance_due': balance_due(order.grand_total, order.amount_paid),
    }
    detail.update(get_order_lines(db, order_type=order_type, order_id=order.id))
    return detail


def list_orders(
    db: Session,
    *,
    order_type: OrderType,
    status: JobOrderStatus | SalesOrderStatus | None = None,
    customer_id: str | None = None,
) -> list[JobOrder | SalesOrder]:
    model = ORDER_MODELS[OrderType(order_type)]
    query = select(model).order_by(model.created_at.desc())
    if status is not None:
        query = query.where(model.status == status)
    if customer_id is not None:
        query = query.where(model.customer_id == customer_id)
    return db.execute(query).scalars().all()


def add_payment(db: Session, *, order_type: OrderType, order_id: str, payment: Payment) -> JobOrder | SalesOrder:
    """Attach ``payment`` to an order unless a payment with the same id is already recorded."""
    order_type = OrderType(order_type)
    order = _get_order_row(db, order_type, order_id)
    if payment.order_id != order.id or OrderType(payment.order_type) != order_type:
        raise ValidationError('Payment does not belong to this order')

    existing = db.get(Payment, payment.id) if payment.id else None
    if existing is not None and existing is not payment:
        if existing.order_id != order.id:
            raise InvalidStateError(f'Payment {payment.id} is already recorded against another order')
        logger.info('Payment %s already recorded for %s %s', payment.id, order_type.value, order.id)
    elif existing is None:
        if order.status in CLOSED_ORDER_STATUSES:
            raise InvalidStateError('Payments cannot be added to a cancelled order')
        db.add(payment)
        db.flush()

    _refresh_payment_state(db, order, order_type)
    order.updated_at = _now()
    db.flush()
    return order


def update_job_order(
    db: Session,
    *,
    job_order_id: str,
    status: JobOrderStatus | None = None,
    diagnostics: str | None = None,
    estimated_completion_date: date | None = None,
    actual_completion_date: date | None = None,
    discount_amount: Decimal | None = None,
    tax_amount: Decimal | None = None,
) -> JobOrder:
    order = _get_order_row(db, OrderType.JOB_ORDER, job_order_id)
    if status is not None:
        order.status = status
        if status == JobOrderStatus.COMPLETED and order.actual_completion_date is None:
            order.actual_completion_date = actual_completion_date or date.today()
    if actual_completion_date is not None:
        order.actual_completion_date = actual_completion_date
    if diagnostics is not None:
        order.diagnostics = diagnostics
    if estimated_completion_date is not None:
        order.estimated_completion_date = estimated_completion_date

    services, parts = get_job_order_lines(db, order.id)
    totals = compute_order_totals(
        labor_costs=[line.labor_cost for line in services],
        part_lines=[LineAmount(line.quantity, line.price_per_unit, line.total_price) for line in parts],
        discount_amount=discount_amount if discount_amount is not None else order.discount_amount,
        tax_amount=tax_amount if tax_amount is not None else order.tax_amount,
        tax_rate=settings.default_tax_rate,
    )
    order.labor_total = totals.labor_total
    order.parts_total = totals.parts_total
    order.discount_amount = totals.discount_amount
    order.tax_amount = totals.tax_amount
    order.grand_total = totals.grand_total
    order.updated_at = _now()
    _refresh_payment_state(db, order, OrderType.JOB_ORDER)
    return order


def update_sales_order_status(db: Session, *, sales_order_id: str, status: SalesOrderStatus) -> SalesOrder:
    order = _get_order_row(db, OrderType.SALES_ORDER, sales_order_id)
    if order.status == SalesOrderStatus.CANCELLED and status != SalesOrderStatus.CANCELLED:
        raise InvalidStateError('A cancelled sale cannot be reopened')
    order.status = status
    order.updated_at = _now()
    db.flush()
    return order


def delete_job_order(db: Session, *, job_order_id: str) -> None:
    order = _get_order_row(db, OrderType.JOB_ORDER, job_order_id)
    has_payments = db.execute(
        select(Payment.id).where(Payment.order_id == order.id, Payment.order_type == OrderType.JOB_ORDER).limit(1)
    ).first()
    if has_payments:
        raise InvalidStateError('A job order with recorded payments cannot be deleted')
    db.execute(delete(JobOrderServiceLine).where(JobOrderServiceLine.job_order_id == order.id))
    db.execute(delete(JobOrderPartLine).where(JobOrderPartLine.job_order_id == order.id))
    db.delete(order)
    db.flush()
    logger.info('Deleted job order %s', job_order_id)
