from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from torquetrack.db import get_db
from torquetrack.dependencies import get_actor_user_id
from torquetrack.models import JobOrderStatus, OrderType, PaymentMethod, SalesOrderStatus
from torquetrack.schemas import (
    JobOrderCreate,
    JobOrderDetailOut,
    JobOrderOut,
    JobOrderUpdate,
    PartLineIn,
    PaymentCreate,
    PaymentOut,
    SalesOrderCreate,
    SalesOrderDetailOut,
    SalesOrderOut,
    SalesOrderStatusChange,
)
from torquetrack.services.order_service import (
    PartLineInput,
    ServiceLineInput,
    create_job_order,
    create_sales_order,
    delete_job_order,
    get_order_detail,
    list_orders,
    update_job_order,
    update_sales_order_status,
)
from torquetrack.services.payment_service import get_payment, list_payments, record_payment

router = APIRouter(tags=['orders'])


def _part_lines(items: list[PartLineIn]) -> list[PartLineInput]:
    return [PartLineInput(**item.model_dump()) for item in items]


@router.get('/job-orders', response_model=list[JobOrderOut])
def job_orders_list(
    status: JobOrderStatus | None = None,
    customer_id: str | None = None,
    db: Session = Depends(get_db),
):
    return list_orders(db, order_type=OrderType.JOB_ORDER, status=status, customer_id=customer_id)


@router.post('/job-orders', response_model=JobOrderDetailOut, status_code=201)
def job_orders_create(
    payload: JobOrderCreate,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    fields = payload.model_dump(exclude={'services', 'parts'})
    order = create_job_order(
        db,
        services=[ServiceLineInput(**line.model_dump()) for line in payload.services],
        parts=_part_lines(payload.parts),
        created_by_user_id=actor_user_id,
        **fields,
    )
    db.commit()
    return get_order_detail(db, order_type=OrderType.JOB_ORDER, order_id=order.id)


@router.get('/job-orders/{job_order_id}', response_model=JobOrderDetailOut)
def job_orders_detail(job_order_id: str, db: Session = Depends(get_db)):
    detail = get_order_detail(db, order_type=OrderType.JOB_ORDER, order_id=job_order_id)
    # Reads refresh the cached payment fields.
    db.commit()
    return detail


@router.patch('/job-orders/{job_order_id}', response_model=JobOrderDetailOut)
def job_orders_update(job_order_id: str, payload: JobOrderUpdate, db: Session = Depends(get_db)):
    update_job_order(db, job_order_id=job_order_id, **payload.model_dump())
    db.commit()
    return get_order_detail(db, order_type=OrderType.JOB_ORDER, order_id=job_order_id)


@router.delete('/job-orders/{job_order_id}', status_code=204)
def job_orders_delete(job_order_id: str, db: Session = Depends(get_db)):
    delete_job_order(db, job_order_id=job_order_id)
    db.commit()


@router.get('/sales-orders', response_model=list[SalesOrderOut])
def sales_orders_list(
    status: SalesOrderStatus | None = None,
    customer_id: str | None = None,
    db: Session = Depends(get_db),
):
    return list_orders(db, order_type=OrderType.SALES_ORDER, status=status, customer_id=customer_id)


@router.post('/sales-orders', response_model=SalesOrderDetailOut, status_code=201)
def sales_orders_create(
    payload: SalesOrderCreate,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    fields = payload.model_dump(exclude={'items'})
    order = create_sales_order(
        db,
        items=_part_lines(payload.items),
        created_by_user_id=actor_user_id,
        **fields,
    )
    db.commit()
    return get_order_detail(db, order_type=OrderType.SALES_ORDER, order_id=order.id)


@router.get('/sales-orders/{sales_order_id}', response_model=SalesOrderDetailOut)
def sales_orders_detail(sales_order_id: str, db: Session = Depends(get_db)):
    detail = get_order_detail(db, order_type=OrderType.SALES_ORDER, order_id=sales_order_id)
    db.commit()
    return detail


@router.post('/sales-orders/{sales_order_id}/status', response_model=SalesOrderOut)
def sales_orders_change_status(sales_order_id: str, payload: SalesOrderStatusChange, db: Session = Depends(get_db)):
    order = update_sales_order_status(db, sales_order_id=sales_order_id, status=payload.status)
    db.commit()
    return order


@router.get('/payments', response_model=list[PaymentOut])
def payments_list(
    order_type: OrderType | None = None,
    order_id: str | None = None,
    method: PaymentMethod | None = None,
    db: Session = Depends(get_db),
):
    return list_payments(db, order_type=order_type, order_id=order_id, method=method)


@router.post('/payments', response_model=PaymentOut, status_code=201)
def payments_create(
    payload: PaymentCreate,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    _, payment = record_payment(db, processed_by_user_id=actor_user_id, **payload.model_dump())
    db.commit()
    return payment


@router.get('/payments/{payment_id}', response_model=PaymentOut)
def payments_detail(payment_id: str, db: Session = Depends(get_db)):
    return get_payment(db, payment_id)
