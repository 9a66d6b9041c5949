import logging
from decimal import Decimal

from sqlalchemy import select

from torquetrack.db import SessionLocal, engine, init_db
from torquetrack.models import Customer, Part, PurchaseOrder, ShopService, Supplier
from torquetrack.services.directory_service import create_customer, create_shop_service, create_supplier
from torquetrack.services.inventory_service import create_part
from torquetrack.services.purchase_order_service import PurchaseOrderLineInput, create_purchase_order

logger = logging.getLogger(__name__)

SEED_ACTOR = 'seed'

DEMO_PARTS = [
    {
        'name': 'Spark Plug NGK-CR8E',
        'brand': 'NGK',
        'category': 'Engine',
        'sku': 'SPK-NGK-CR8E',
        'price': Decimal('15.99'),
        'cost': Decimal('8.50'),
        'supplier_name': 'MotoSupplies Inc.',
        'stock_quantity': 50,
        'min_stock_alert': 10,
        'is_active': True,
    },
    {
        'name': 'Oil Filter Hiflo HF204',
        'brand': 'Hiflofiltro',
        'category': 'Engine',
        'sku': 'OIL-HF-HF204',
        'price': Decimal('12.50'),
        'cost': Decimal('6.00'),
        'supplier_name': 'BikeParts Direct',
        'stock_quantity': 30,
        'min_stock_alert': 5,
        'is_active': True,
    },
    {
        'name': 'Brake Pads EBC FA192HH',
        'brand': 'EBC',
        'category': 'Brakes',
        'sku': 'BRK-EBC-FA192HH',
        'price': Decimal('45.00'),
        'cost': Decimal('25.00'),
        'supplier_name': 'MotoSupplies Inc.',
        'stock_quantity': 20,
        'min_stock_alert': 5,
        'is_active': False,
    },
]

DEMO_SUPPLIERS = [
    {
        'name': 'MotoSupplies Inc.',
        'contact_person': None,
        'email': None,
        'phone': None,
        'address': None,
    },
    {
        'name': 'MotoParts International',
        'contact_person': 'John Supplier',
        'email': 'sales@motoparts.com',
        'phone': '555-SUP-PLY1',
        'address': '1 International Drive, Supplier City',
    },
    {
        'name': 'Speedy Spares Ltd.',
        'contact_person': 'Jane Fast',
        'email': 'orders@speedyspares.co',
        'phone': '555-SPD-SPAR',
        'address': None,
    },
]

DEMO_CUSTOMERS = [
    {'first_name': 'John', 'last_name': 'Doe', 'phone': '555-1234', 'email': 'john.doe@example.com', 'address': '123 Main St, Anytown, USA'},
    {'first_name': 'Jane', 'last_name': 'Smith', 'phone': '555-5678', 'email': 'jane.smith@example.com', 'address': '456 Oak Ave, Anytown, USA'},
    {'first_name': 'Alice', 'last_name': 'Johnson', 'phone': '555-8765', 'email': None, 'address': None},
]

DEMO_SERVICES = [
    {'name': 'Oil Change', 'category': 'Maintenance', 'default_labor_cost': Decimal('2500'), 'is_active': True},
    {'name': 'Tire Replacement', 'category': 'Wheels', 'default_labor_cost': Decimal('3750'), 'is_active': True},
    {'name': 'Engine Tune-up', 'category': 'Engine', 'default_labor_cost': Decimal('7500'), 'is_active': False},
]


def seed() -> None:
    with SessionLocal() as db:
        for values in DEMO_PARTS:
            part = db.execute(select(Part).where(Part.sku == values['sku'])).scalar_one_or_none()
            if not part:
                create_part(db, **values)

        suppliers = {}
        for values in DEMO_SUPPLIERS:
            supplier = db.execute(select(Supplier).where(Supplier.name == values['name'])).scalar_one_or_none()
            if not supplier:
                supplier = create_supplier(db, **values)
            suppliers[supplier.name] = supplier

        for values in DEMO_CUSTOMERS:
            customer = db.execute(select(Customer).where(Customer.phone == values['phone'])).scalar_one_or_none()
            if not customer:
                create_customer(db, **values)

        for values in DEMO_SERVICES:
            service = db.execute(select(ShopService).where(ShopService.name == values['name'])).scalar_one_or_none()
            if not service:
                create_shop_service(db, **values)

        has_purchase_orders = db.execute(select(PurchaseOrder.id).limit(1)).first()
        if not has_purchase_orders:
            spark_plug = db.execute(select(Part).where(Part.sku == 'SPK-NGK-CR8E')).scalar_one()
            create_purchase_order(
                db,
                supplier_id=suppliers['MotoSupplies Inc.'].id,
                items=[PurchaseOrderLineInput(quantity=50, unit_price=Decimal('8.00'), part_id=spark_plug.id)],
                created_by_user_id=SEED_ACTOR,
                notes='Restock spark plugs',
            )

        db.commit()
    logger.info('Demo shop data inserted/verified.')


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    init_db(engine)
    seed()
    print('Seed data inserted/verified.')
