from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from torquetrack.db import get_db
from torquetrack.dependencies import get_actor_user_id
from torquetrack.schemas import PartCreate, PartOut, PartUpdate, StockAdjustmentRequest
from torquetrack.services.audit_service import log_audit
from torquetrack.services.inventory_service import (
    apply_manual_adjustment,
    create_part,
    delete_part,
    get_part,
    list_low_stock_parts,
    list_parts,
    update_part,
)

router = APIRouter(prefix='/parts', tags=['inventory'])


@router.get('', response_model=list[PartOut])
def parts_list(active_only: bool = False, in_stock_only: bool = False, db: Session = Depends(get_db)):
    return list_parts(db, active_only=active_only, in_stock_only=in_stock_only)


@router.get('/low-stock', response_model=list[PartOut])
def parts_low_stock(db: Session = Depends(get_db)):
    return list_low_stock_parts(db)


@router.post('', response_model=PartOut, status_code=201)
def parts_create(
    payload: PartCreate,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    part = create_part(db, **payload.model_dump())
    log_audit(
        db,
        actor_user_id=actor_user_id,
        action='PART_CREATED',
        entity_type='Part',
        entity_id=part.id,
        metadata={'name': part.name, 'stock_quantity': part.stock_quantity},
    )
    db.commit()
    return part


@router.get('/{part_id}', response_model=PartOut)
def parts_detail(part_id: str, db: Session = Depends(get_db)):
    return get_part(db, part_id)


@router.patch('/{part_id}', response_model=PartOut)
def parts_update(part_id: str, payload: PartUpdate, db: Session = Depends(get_db)):
    part = update_part(db, part_id=part_id, changes=payload.model_dump(exclude_unset=True))
    db.commit()
    return part


@router.delete('/{part_id}', status_code=204)
def parts_delete(
    part_id: str,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    delete_part(db, part_id=part_id)
    log_audit(db, actor_user_id=actor_user_id, action='PART_DELETED', entity_type='Part', entity_id=part_id)
    db.commit()


@router.post('/{part_id}/adjust-stock', response_model=PartOut)
def parts_adjust_stock(
    part_id: str,
    payload: StockAdjustmentRequest,
    actor_user_id: str = Depends(get_actor_user_id),
    db: Session = Depends(get_db),
):
    part = apply_manual_adjustment(
        db,
        part_id=part_id,
        adjustment_type=payload.adjustment_type,
        quantity=payload.quantity,
        reason=payload.reason,
        actor_user_id=actor_user_id,
    )
    db.commit()
    return part
