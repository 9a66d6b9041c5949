from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from torquetrack.db import get_db
from torquetrack.schemas import (
    ActiveChange,
    CustomerCreate,
    CustomerOut,
    MechanicCreate,
    MechanicOut,
    MotorcycleCreate,
    MotorcycleOut,
    ShopServiceCreate,
    ShopServiceOut,
    SupplierCreate,
    SupplierOut,
)
from torquetrack.services.directory_service import (
    create_customer,
    create_mechanic,
    create_motorcycle,
    create_shop_service,
    create_supplier,
    get_customer,
    get_mechanic,
    get_motorcycle,
    get_shop_service,
    get_supplier,
    list_customers,
    list_mechanics,
    list_motorcycles,
    list_shop_services,
    list_suppliers,
    set_mechanic_active,
    set_supplier_active,
)

router = APIRouter(tags=['directory'])


@router.get('/customers', response_model=list[CustomerOut])
def customers_list(db: Session = Depends(get_db)):
    return list_customers(db)


@router.post('/customers', response_model=CustomerOut, status_code=201)
def customers_create(payload: CustomerCreate, db: Session = Depends(get_db)):
    customer = create_customer(db, **payload.model_dump())
    db.commit()
    return customer


@router.get('/customers/{customer_id}', response_model=CustomerOut)
def customers_detail(customer_id: str, db: Session = Depends(get_db)):
    return get_customer(db, customer_id)


@router.get('/motorcycles', response_model=list[MotorcycleOut])
def motorcycles_list(customer_id: str | None = None, db: Session = Depends(get_db)):
    return list_motorcycles(db, customer_id=customer_id)


@router.post('/motorcycles', response_model=MotorcycleOut, status_code=201)
def motorcycles_create(payload: MotorcycleCreate, db: Session = Depends(get_db)):
    motorcycle = create_motorcycle(db, **payload.model_dump())
    db.commit()
    return motorcycle


@router.get('/motorcycles/{motorcycle_id}', response_model=MotorcycleOut)
def motorcycles_detail(motorcycle_id: str, db: Session = Depends(get_db)):
    return get_motorcycle(db, motorcycle_id)


@router.get('/mechanics', response_model=list[MechanicOut])
def mechanics_list(active_only: bool = False, db: Session = Depends(get_db)):
    return list_mechanics(db, active_only=active_only)


@router.post('/mechanics', response_model=MechanicOut, status_code=201)
def mechanics_create(payload: MechanicCreate, db: Session = Depends(get_db)):
    mechanic = create_mechanic(db, **payload.model_dump())
    db.commit()
    return mechanic


@router.get('/mechanics/{mechanic_id}', response_model=MechanicOut)
def mechanics_detail(mechanic_id: str, db: Session = Depends(get_db)):
    return get_mechanic(db, mechanic_id)


@router.post('/mechanics/{mechanic_id}/active', response_model=MechanicOut)
def mechanics_set_active(mechanic_id: str, payload: ActiveChange, db: Session = Depends(get_db)):
    mechanic = set_mechanic_active(db, mechanic_id=mechanic_id, active=payload.is_active)
    db.commit()
    return mechanic


@router.get('/suppliers', response_model=list[SupplierOut])
def suppliers_list(active_only: bool = False, db: Session = Depends(get_db)):
    return list_suppliers(db, active_only=active_only)


@router.post('/suppliers', response_model=SupplierOut, status_code=201)
def suppliers_create(payload: SupplierCreate, db: Session = Depends(get_db)):
    supplier = create_supplier(db, **payload.model_dump())
    db.commit()
    return supplier


@router.get('/suppliers/{supplier_id}', response_model=SupplierOut)
def suppliers_detail(supplier_id: str, db: Session = Depends(get_db)):
    return get_supplier(db, supplier_id)


@router.post('/suppliers/{supplier_id}/active', response_model=SupplierOut)
def suppliers_set_active(supplier_id: str, payload: ActiveChange, db: Session = Depends(get_db)):
    supplier = set_supplier_active(db, supplier_id=supplier_id, active=payload.is_active)
    db.commit()
    return supplier


@router.get('/services', response_model=list[ShopServiceOut])
def services_list(active_only: bool = False, db: Session = Depends(get_db)):
    return list_shop_services(db, active_only=active_only)


@router.post('/services', response_model=ShopServiceOut, status_code=201)
def services_create(payload: ShopServiceCreate, db: Session = Depends(get_db)):
    service = create_shop_service(db, **payload.model_dump())
    db.commit()
    return service


@router.get('/services/{service_id}', response_model=ShopServiceOut)
def services_detail(service_id: str, db: Session = Depends(get_db)):
    return get_shop_service(db, service_id)
