from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from torquetrack.errors import InvalidStateError, NotFoundError, ValidationError
from torquetrack.models import Customer, Mechanic, Motorcycle, ShopService, Supplier
from torquetrack.services.document_math_service import to_money, validate_quantity

WALK_IN_CUSTOMER_NAME = 'Walk-in Customer'


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _required(value: str | None, *, field: str) -> str:
    clean = (value or '').strip()
    if not clean:
        raise ValidationError(f'{field} is required')
    return clean


def customer_display_name(customer: Customer) -> str:
    return f'{customer.first_name} {customer.last_name}'.strip()


def get_customer(db: Session, customer_id: str) -> Customer:
    customer = db.execute(select(Customer).where(Customer.id == customer_id)).scalar_one_or_none()
    if customer is None:
        raise NotFoundError(f'Customer {customer_id} not found')
    return customer


def list_customers(db: Session) -> list[Customer]:
    return db.execute(select(Customer).order_by(Customer.last_name.asc(), Customer.first_name.asc())).scalars().all()


def create_customer(
    db: Session,
    *,
    first_name: str,
    last_name: str,
    phone: str,
    email: str | None = None,
    address: str | None = None,
    notes: str | None = None,
) -> Customer:
    customer = Customer(
        first_name=_required(first_name, field='First name'),
        last_name=_required(last_name, field='Last name'),
        phone=_required(phone, field='Phone'),
        email=(email or '').strip() or None,
        address=address,
        notes=notes,
    )
    db.add(customer)
    db.flush()
    return customer


def get_motorcycle(db: Session, motorcycle_id: str) -> Motorcycle:
    motorcycle = db.execute(select(Motorcycle).where(Motorcycle.id == motorcycle_id)).scalar_one_or_none()
    if motorcycle is None:
        raise NotFoundError(f'Motorcycle {motorcycle_id} not found')
    return motorcycle


def list_motorcycles(db: Session, *, customer_id: str | None = None) -> list[Motorcycle]:
    query = select(Motorcycle).order_by(Motorcycle.make.asc(), Motorcycle.model.asc(), Motorcycle.plate_number.asc())
    if customer_id is not None:
        query = query.where(Motorcycle.customer_id == customer_id)
    return db.execute(query).scalars().all()


def create_motorcycle(
    db: Session,
    *,
    customer_id: str,
    make: str,
    model: str,
    plate_number: str,
    year: int | None = None,
    color: str | None = None,
    vin: str | None = None,
    odometer: int = 0,
    notes: str | None = None,
) -> Motorcycle:
    customer = get_customer(db, customer_id)
    if year is not None:
        validate_quantity(year, field='Year', minimum=1885)
    motorcycle = Motorcycle(
        customer_id=customer.id,
        make=_required(make, field='Make'),
        model=_required(model, field='Model'),
        plate_number=_required(plate_number, field='Plate number').upper(),
        year=year,
        color=color,
        vin=(vin or '').strip() or None,
        odometer=validate_quantity(odometer, field='Odometer', minimum=0),
        notes=notes,
    )
    db.add(motorcycle)
    db.flush()
    return motorcycle


def get_customer_motorcycle(db: Session, *, motorcycle_id: str, customer_id: str) -> Motorcycle:
    """Return the motorcycle only if ``customer_id`` owns it."""
    motorcycle = get_motorcycle(db, motorcycle_id)
    if motorcycle.customer_id != customer_id:
        raise ValidationError(f'Motorcycle {motorcycle.plate_number} does not belong to this customer')
    return motorcycle


def get_mechanic(db: Session, mechanic_id: str) -> Mechanic:
    mechanic = db.execute(select(Mechanic).where(Mechanic.id == mechanic_id)).scalar_one_or_none()
    if mechanic is None:
        raise NotFoundError(f'Mechanic {mechanic_id} not found')
    return mechanic


def get_assignable_mechanic(db: Session, mechanic_id: str) -> Mechanic:
    mechanic = get_mechanic(db, mechanic_id)
    if not mechanic.is_active:
        raise InvalidStateError(f'Mechanic {mechanic.name} is inactive')
    return mechanic


def list_mechanics(db: Session, *, active_only: bool = False) -> list[Mechanic]:
    query = select(Mechanic).order_by(Mechanic.name.asc())
    if active_only:
        query = query.where(Mechanic.is_active.is_(True))
    return db.execute(query).scalars().all()


def create_mechanic(
    db: Session,
    *,
    name: str,
    specializations: str | None = None,
    is_active: bool = True,
) -> Mechanic:
    mechanic = Mechanic(
        name=_required(name, field='Mechanic name'),
        specializations=specializations,
        is_active=is_active,
    )
    db.add(mechanic)
    db.flush()
    return mechanic


def set_mechanic_active(db: Session, *, mechanic_id: str, active: bool) -> Mechanic:
    mechanic = get_mechanic(db, mechanic_id)
    mechanic.is_active = active
    mechanic.updated_at = _now()
    db.flush()
    return mechanic


def get_supplier(db: Session, supplier_id: str) -> Supplier:
    supplier = db.execute(select(Supplier).where(Supplier.id == supplier_id)).scalar_one_or_none()
    if supplier is None:
        raise NotFoundError(f'Supplier {supplier_id} not found')
    return supplier


def list_suppliers(db: Session, *, active_only: bool = False) -> list[Supplier]:
    query = select(Supplier).order_by(Supplier.name.asc())
    if active_only:
        query = query.where(Supplier.is_active.is_(True))
    return db.execute(query).scalars().all()


def create_supplier(
    db: Session,
    *,
    name: str,
    contact_person: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
    is_active: bool = True,
) -> Supplier:
    supplier = Supplier(
        name=_required(name, field='Supplier name'),
        contact_person=contact_person,
        email=(email or '').strip() or None,
        phone=phone,
        address=address,
        is_active=is_active,
    )
    db.add(supplier)
    db.flush()
    return supplier


def set_supplier_active(db: Session, *, supplier_id: str, active: bool) -> Supplier:
    supplier = get_supplier(db, supplier_id)
    supplier.is_active = active
    supplier.updated_at = _now()
    db.flush()
    return supplier


def get_shop_service(db: Session, service_id: str) -> ShopService:
    service = db.execute(select(ShopService).where(ShopService.id == service_id)).scalar_one_or_none()
    if service is None:
        raise NotFoundError(f'Service {service_id} not found')
    return service


def list_shop_services(db: Session, *, active_only: bool = False) -> list[ShopService]:
    query = select(ShopService).order_by(ShopService.name.asc())
    if active_only:
        query = query.where(ShopService.is_active.is_(True))
    return db.execute(query).scalars().all()


def create_shop_service(
    db: Session,
    *,
    name: str,
    default_labor_cost: Decimal,
    category: str | None = None,
    is_active: bool = True,
) -> ShopService:
    labor_cost = to_money(default_labor_cost)
    if labor_cost < 0:
        raise ValidationError('Default labor cost cannot be negative')
    service = ShopService(
        name=_required(name, field='Service name'),
        category=category,
        default_labor_cost=labor_cost,
        is_active=is_active,
    )
    db.add(service)
    db.flush()
    return service
