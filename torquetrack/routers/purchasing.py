from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from torquetrack.db import get_db
from torquetrack.dependencies import get_actor_user_id
from torquetrack.models import PurchaseOrderStatus, PurchaseRequisitionStatus
from torquetrack.schemas import (
    GoodsReceiptCreate,
    GoodsReceiptDetailOut,
    GoodsReceiptOut,
    GoodsReceiptUpdate,
    PurchaseOrderCreate,
    PurchaseOrderDetailOut,
    PurchaseOrderFromRequisition,
    PurchaseOrderItemIn,
    PurchaseOrderOut,
    PurchaseOrderUpdate,
    ReceiptItemIn,
    RequisitionCreate,
    RequisitionDetailOut,
    RequisitionItemIn,
    RequisitionOut,
    RequisitionStatusChange,
    RequisitionUpdate,
)
from torquetrack.services.goods_receipt_service import (
    ReceiptLineInput,
    create_goods_receipt,
    get_goods_receipt,
    get_goods_receipt_items,
    list_goods_receipts,
    update_goods_receipt,
)
from torquetrack.services.purchase_order_service import (
    KEEP,
    PurchaseOrderLineInput,
    create_purchase_order,
    create_purchase_order_from_requisition,
    delete_purchase_order,
    get_purchase_order,
    get_purchase_order_items,
    list_purchase_orders,
    list_receivable_purchase_orders,
    update_purchase_order,
)
from torquetrack.services.requisition_service import (
    RequisitionItemInput,
    create_requisition,
    delete_requisition,
    get_requisition,
    get_requisition_items,
    list_requisitions,
    transition_requisition_status,
    update_requisition,
)

router = APIRouter(tags=['purchasing'])


def _requisition_items(items: list[RequisitionItemIn] | None) -> list[RequisitionItemInput] | None:
    if items is None:
        return None
    return [RequisitionItemInput(**item.model_dump()) for item in items]


def _purchase_order_items(items: list[PurchaseOrderItemIn] | None) -> list[PurchaseOrderLineInput] | None:
    if items is None:
        return None
    return [PurchaseOrderLineInput(**item.model_dump()) for item in items]


def _receipt_items(items: list[ReceiptItemIn] | None) -> list[ReceiptLineInput] | None:
    if items is None:
        return None
    return [ReceiptLineInput(**item.model_dump()) for item in items]


def _requisition_detail(db: Session, requisition_id: str) -> dict:
    requisition = get_requisition(db, requisition_id)
    return {'requisition': requisition, 'items': get_requisition_items(db, requisition.id)}


def _purchase_order_detail(db: Session, purchase_order_id: str) -> dict:
    po = get_purchase_order(db, purchase_order_id)
    return {'purchase_order': po, 'items': get_purchase_order_items(db, po.id)}


def _goods_receipt_detail(db: Session, receipt_id: str) -> dict:
    receipt = get_goods_receipt(db, receipt_id)
    return {'goods_receipt': receipt, 'items': get_goods_receipt_items(db, receipt.id)}


@router.get('/requisitions', response_model=list[RequisitionOut])
def requisitions_list(status: PurchaseRequisitionStatus | None = None, db: Session = Depends(get_db)):
    return list_requisitions(db, status=status)


@router.post('/requisitions', response_model=RequisitionDetailOut, status_code=201)
def requisitions_create(
    payload: RequisitionCreate,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    requisition = create_requisition(
        db,
        items=_requisition_items(payload.items),
        requested_by_user_id=actor_user_id,
        department=payload.department,
        notes=payload.notes,
        status=payload.status,
    )
    db.commit()
    return _requisition_detail(db, requisition.id)


@router.get('/requisitions/{requisition_id}', response_model=RequisitionDetailOut)
def requisitions_detail(requisition_id: str, db: Session = Depends(get_db)):
    return _requisition_detail(db, requisition_id)


@router.patch('/requisitions/{requisition_id}', response_model=RequisitionDetailOut)
def requisitions_update(requisition_id: str, payload: RequisitionUpdate, db: Session = Depends(get_db)):
    update_requisition(
        db,
        requisition_id=requisition_id,
        items=_requisition_items(payload.items),
        department=payload.department,
        notes=payload.notes,
    )
    db.commit()
    return _requisition_detail(db, requisition_id)


@router.post('/requisitions/{requisition_id}/status', response_model=RequisitionOut)
def requisitions_change_status(
    requisition_id: str,
    payload: RequisitionStatusChange,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    requisition = transition_requisition_status(
        db,
        requisition_id=requisition_id,
        status=payload.status,
        approver_user_id=actor_user_id,
    )
    db.commit()
    return requisition


@router.delete('/requisitions/{requisition_id}', status_code=204)
def requisitions_delete(requisition_id: str, db: Session = Depends(get_db)):
    delete_requisition(db, requisition_id=requisition_id)
    db.commit()


@router.get('/purchase-orders', response_model=list[PurchaseOrderOut])
def purchase_orders_list(
    status: PurchaseOrderStatus | None = None,
    receivable_only: bool = False,
    db: Session = Depends(get_db),
):
    if receivable_only:
        return list_receivable_purchase_orders(db)
    return list_purchase_orders(db, status=status)


@router.post('/purchase-orders', response_model=PurchaseOrderDetailOut, status_code=201)
def purchase_orders_create(
    payload: PurchaseOrderCreate,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    fields = payload.model_dump(exclude={'items'})
    po = create_purchase_order(
        db,
        items=_purchase_order_items(payload.items),
        created_by_user_id=actor_user_id,
        **fields,
    )
    db.commit()
    return _purchase_order_detail(db, po.id)


@router.post('/purchase-orders/from-requisition', response_model=PurchaseOrderDetailOut, status_code=201)
def purchase_orders_create_from_requisition(
    payload: PurchaseOrderFromRequisition,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    po = create_purchase_order_from_requisition(db, created_by_user_id=actor_user_id, **payload.model_dump())
    db.commit()
    return _purchase_order_detail(db, po.id)


@router.get('/purchase-orders/{purchase_order_id}', response_model=PurchaseOrderDetailOut)
def purchase_orders_detail(purchase_order_id: str, db: Session = Depends(get_db)):
    return _purchase_order_detail(db, purchase_order_id)


@router.patch('/purchase-orders/{purchase_order_id}', response_model=PurchaseOrderDetailOut)
def purchase_orders_update(purchase_order_id: str, payload: PurchaseOrderUpdate, db: Session = Depends(get_db)):
    update_purchase_order(
        db,
        purchase_order_id=purchase_order_id,
        items=_purchase_order_items(payload.items),
        tax_amount=payload.tax_amount if 'tax_amount' in payload.model_fields_set else KEEP,
        shipping_cost=payload.shipping_cost,
        status=payload.status,
        expected_delivery_date=payload.expected_delivery_date,
        payment_terms=payload.payment_terms,
        notes=payload.notes,
    )
    db.commit()
    return _purchase_order_detail(db, purchase_order_id)


@router.delete('/purchase-orders/{purchase_order_id}', status_code=204)
def purchase_orders_delete(purchase_order_id: str, db: Session = Depends(get_db)):
    delete_purchase_order(db, purchase_order_id=purchase_order_id)
    db.commit()


@router.get('/goods-receipts', response_model=list[GoodsReceiptOut])
def goods_receipts_list(purchase_order_id: str | None = None, db: Session = Depends(get_db)):
    return list_goods_receipts(db, purchase_order_id=purchase_order_id)


@router.post('/goods-receipts', response_model=GoodsReceiptDetailOut, status_code=201)
def goods_receipts_create(
    payload: GoodsReceiptCreate,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    receipt = create_goods_receipt(
        db,
        purchase_order_id=payload.purchase_order_id,
        received_by_user_id=actor_user_id,
        items=_receipt_items(payload.items),
        status=payload.status,
        received_date=payload.received_date,
        notes=payload.notes,
        discrepancies=payload.discrepancies,
    )
    db.commit()
    return _goods_receipt_detail(db, receipt.id)


@router.get('/goods-receipts/{receipt_id}', response_model=GoodsReceiptDetailOut)
def goods_receipts_detail(receipt_id: str, db: Session = Depends(get_db)):
    return _goods_receipt_detail(db, receipt_id)


@router.patch('/goods-receipts/{receipt_id}', response_model=GoodsReceiptDetailOut)
def goods_receipts_update(
    receipt_id: str,
    payload: GoodsReceiptUpdate,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    update_goods_receipt(
        db,
        receipt_id=receipt_id,
        status=payload.status,
        items=_receipt_items(payload.items),
        received_date=payload.received_date,
        notes=payload.notes,
        discrepancies=payload.discrepancies,
        actor_user_id=actor_user_id,
    )
    db.commit()
    return _goods_receipt_detail(db, receipt_id)
