from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from torquetrack.db import build_engine, init_db
from torquetrack.errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from torquetrack.models import (
    JobOrderStatus,
    OrderType,
    Payment,
    PaymentMethod,
    PaymentStatus,
    SalesOrderStatus,
)
from torquetrack.services.directory_service import (
    create_customer,
    create_mechanic,
    create_motorcycle,
    create_shop_service,
)
from torquetrack.services.inventory_service import create_part, get_part
from torquetrack.services.order_service import (
    PartLineInput,
    ServiceLineInput,
    add_payment,
    create_job_order,
    create_sales_order,
    delete_job_order,
    get_order,
    get_order_detail,
    get_order_lines,
    get_payment_history,
    list_orders,
    order_balance_due,
    update_job_order,
    update_sales_order_status,
)


class OrderServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = build_engine('sqlite+pysqlite:///:memory:')
        init_db(self.engine)
        self.db = Session(self.engine)
        self.customer = create_customer(self.db, first_name='John', last_name='Doe', phone='555-1234')
        self.part = create_part(self.db, name='Spark Plug NGK-CR8E', price=Decimal('15.99'), stock_quantity=10)
        self.other_part = create_part(self.db, name='Oil Filter Hiflo HF204', price=Decimal('12.50'), stock_quantity=2)
        self.oil_change = create_shop_service(self.db, name='Oil Change', default_labor_cost=Decimal('2500'))

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _job_order(self, labor: str = '1000.00', **kwargs):
        return create_job_order(
            self.db,
            customer_id=self.customer.id,
            services=[ServiceLineInput(service_name='Inspection', labor_cost=Decimal(labor))],
            created_by_user_id='advisor-1',
            tax_amount=kwargs.pop('tax_amount', Decimal('0')),
            **kwargs,
        )

    def _payment(self, order, amount: str, payment_id: str | None = None) -> Payment:
        payment = Payment(
            order_id=order.id,
            order_type=OrderType.JOB_ORDER,
            amount=Decimal(amount),
            payment_date=date(2024, 5, 1),
            method=PaymentMethod.CASH,
            processed_by_user_id='cashier-1',
        )
        if payment_id:
            payment.id = payment_id
        return payment

    def test_sale_debits_stock(self) -> None:
        create_sales_order(
            self.db,
            items=[PartLineInput(part_id=self.part.id, quantity=4)],
            created_by_user_id='cashier-1',
        )
        self.assertEqual(get_part(self.db, self.part.id).stock_quantity, 6)

    def test_walk_in_sale_is_paid_with_initial_payment(self) -> None:
        order = create_sales_order(
            self.db,
            items=[PartLineInput(part_id=self.part.id, quantity=2)],
            created_by_user_id='cashier-1',
            initial_payment_method=PaymentMethod.CREDIT_CARD,
        )
        self.assertEqual(order.customer_name, 'Walk-in Customer')
        self.assertEqual(order.items_total, Decimal('31.98'))
        self.assertEqual(order.tax_amount, Decimal('3.84'))  # 12% of 31.98
        self.assertEqual(order.grand_total, Decimal('35.82'))
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(order.amount_paid, order.grand_total)

        history = get_payment_history(self.db, order_type=OrderType.SALES_ORDER, order_id=order.id)
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].amount, order.grand_total)
        self.assertEqual(history[0].method, PaymentMethod.CREDIT_CARD)

    def test_insufficient_stock_aborts_and_restores_earlier_debits(self) -> None:
        with self.assertRaises(InsufficientStockError):
            create_sales_order(
                self.db,
                items=[
                    PartLineInput(part_id=self.part.id, quantity=3),
                    PartLineInput(part_id=self.other_part.id, quantity=5),
                ],
                created_by_user_id='cashier-1',
            )
        self.assertEqual(get_part(self.db, self.part.id).stock_quantity, 10)
        self.assertEqual(get_part(self.db, self.other_part.id).stock_quantity, 2)
        self.assertEqual(list_orders(self.db, order_type=OrderType.SALES_ORDER), [])

    def test_inactive_part_cannot_be_sold(self) -> None:
        part = create_part(self.db, name='Brake Pads EBC FA192HH', price=Decimal('45.00'), stock_quantity=20, is_active=False)
        with self.assertRaises(InvalidStateError):
            create_sales_order(self.db, items=[PartLineInput(part_id=part.id, quantity=1)], created_by_user_id='cashier-1')

    def test_sale_requires_items(self) -> None:
        with self.assertRaises(ValidationError):
            create_sales_order(self.db, items=[], created_by_user_id='cashier-1')

    def test_job_order_totals_with_catalog_labor_and_parts(self) -> None:
        order = create_job_order(
            self.db,
            customer_id=self.customer.id,
            services=[ServiceLineInput(service_id=self.oil_change.id)],
            parts=[PartLineInput(part_id=self.part.id, quantity=2, price_per_unit=Decimal('15.00'))],
            discount_amount=Decimal('30.00'),
            created_by_user_id='advisor-1',
        )
        self.assertEqual(order.customer_name, 'John Doe')
        self.assertEqual(order.labor_total, Decimal('2500.00'))
        self.assertEqual(order.parts_total, Decimal('30.00'))
        self.assertEqual(order.tax_amount, Decimal('300.00'))  # 12% of 2500
        self.assertEqual(order.grand_total, Decimal('2800.00'))
        self.assertEqual(order.payment_status, PaymentStatus.UNPAID)
        self.assertEqual(get_part(self.db, self.part.id).stock_quantity, 8)

        lines = get_order_lines(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id)
        self.assertEqual(lines['services'][0].service_name, 'Oil Change')
        self.assertEqual(lines['parts'][0].total_price, Decimal('30.00'))

    def test_unknown_customer(self) -> None:
        with self.assertRaises(NotFoundError):
            create_job_order(self.db, customer_id='missing', created_by_user_id='advisor-1')

    def test_job_order_references_customer_motorcycle_and_active_mechanic(self) -> None:
        bike = create_motorcycle(
            self.db,
            customer_id=self.customer.id,
            make='Honda',
            model='CB500X',
            plate_number='abc-123',
            odometer=12000,
        )
        mechanic = create_mechanic(self.db, name='Maria Santos', specializations='Electrical')
        order = create_job_order(
            self.db,
            customer_id=self.customer.id,
            motorcycle_id=bike.id,
            services=[ServiceLineInput(service_id=self.oil_change.id, assigned_mechanic_id=mechanic.id)],
            created_by_user_id='advisor-1',
        )
        self.assertEqual(order.motorcycle_id, bike.id)
        lines = get_order_lines(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id)
        self.assertEqual(lines['services'][0].assigned_mechanic_id, mechanic.id)

    def test_motorcycle_must_belong_to_the_customer(self) -> None:
        other = create_customer(self.db, first_name='Jane', last_name='Smith', phone='555-5678')
        bike = create_motorcycle(self.db, customer_id=other.id, make='Yamaha', model='MT-07', plate_number='XYZ-789')
        with self.assertRaises(ValidationError):
            self._job_order(motorcycle_id=bike.id)
        with self.assertRaises(NotFoundError):
            self._job_order(motorcycle_id='missing')
        self.assertEqual(list_orders(self.db, order_type=OrderType.JOB_ORDER), [])

    def test_mechanic_must_exist_and_be_active(self) -> None:
        mechanic = create_mechanic(self.db, name='Retired Ray', is_active=False)
        for mechanic_id, error in ((mechanic.id, InvalidStateError), ('missing', NotFoundError)):
            with self.assertRaises(error):
                create_job_order(
                    self.db,
                    customer_id=self.customer.id,
                    services=[ServiceLineInput(service_id=self.oil_change.id, assigned_mechanic_id=mechanic_id)],
                    created_by_user_id='advisor-1',
                )

    def test_partial_then_full_payment(self) -> None:
        order = self._job_order()
        self.assertEqual(order.grand_total, Decimal('1000.00'))

        add_payment(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id, payment=self._payment(order, '400.00'))
        self.assertEqual(order.payment_status, PaymentStatus.PARTIAL)
        self.assertEqual(order_balance_due(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id), Decimal('600.00'))

        add_payment(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id, payment=self._payment(order, '600.00'))
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(order_balance_due(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id), Decimal('0.00'))

    def test_zero_value_job_order_is_paid(self) -> None:
        order = create_job_order(self.db, customer_id=self.customer.id, created_by_user_id='advisor-1')
        self.assertEqual(order.grand_total, Decimal('0.00'))
        fetched = get_order(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id)
        self.assertEqual(fetched.payment_status, PaymentStatus.PAID)
        self.assertEqual(get_payment_history(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id), [])

    def test_zero_value_order_created_paid_gets_no_payment_row(self) -> None:
        order = create_job_order(
            self.db,
            customer_id=self.customer.id,
            created_by_user_id='advisor-1',
            payment_status=PaymentStatus.PAID,
        )
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(get_payment_history(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id), [])

    def test_same_payment_id_is_counted_once(self) -> None:
        order = self._job_order()
        for _ in range(2):
            add_payment(
                self.db,
                order_type=OrderType.JOB_ORDER,
                order_id=order.id,
                payment=self._payment(order, '250.00', payment_id='pay-1'),
            )
        self.assertEqual(order.amount_paid, Decimal('250.00'))
        self.assertEqual(len(get_payment_history(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id)), 1)

    def test_payment_order_does_not_change_outcome(self) -> None:
        first = self._job_order()
        second = self._job_order()
        for order, amounts in ((first, ['150.00', '850.00']), (second, ['850.00', '150.00'])):
            for amount in amounts:
                add_payment(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id, payment=self._payment(order, amount))
        self.assertEqual(first.amount_paid, second.amount_paid)
        self.assertEqual(first.payment_status, second.payment_status)
        self.assertEqual(first.payment_status, PaymentStatus.PAID)

    def test_get_order_repairs_a_stale_cache(self) -> None:
        order = self._job_order()
        add_payment(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id, payment=self._payment(order, '400.00'))
        order.amount_paid = Decimal('0.00')
        order.payment_status = PaymentStatus.UNPAID
        self.db.flush()

        fetched = get_order(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id)
        self.assertEqual(fetched.amount_paid, Decimal('400.00'))
        self.assertEqual(fetched.payment_status, PaymentStatus.PARTIAL)

    def test_payment_for_another_order_is_rejected(self) -> None:
        order = self._job_order()
        other = self._job_order()
        with self.assertRaises(ValidationError):
            add_payment(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id, payment=self._payment(other, '10.00'))

    def test_cancelled_order_refuses_payments(self) -> None:
        order = self._job_order()
        update_job_order(self.db, job_order_id=order.id, status=JobOrderStatus.CANCELLED)
        with self.assertRaises(InvalidStateError):
            add_payment(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id, payment=self._payment(order, '10.00'))

    def test_update_job_order_rederives_totals_and_status(self) -> None:
        order = self._job_order()
        add_payment(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id, payment=self._payment(order, '900.00'))
        self.assertEqual(order.payment_status, PaymentStatus.PARTIAL)

        update_job_order(
            self.db,
            job_order_id=order.id,
            discount_amount=Decimal('100.00'),
            status=JobOrderStatus.COMPLETED,
        )
        self.assertEqual(order.grand_total, Decimal('900.00'))
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(order.actual_completion_date, date.today())

    def test_delete_job_order_refused_once_paid(self) -> None:
        unpaid = self._job_order()
        delete_job_order(self.db, job_order_id=unpaid.id)
        with self.assertRaises(NotFoundError):
            get_order(self.db, order_type=OrderType.JOB_ORDER, order_id=unpaid.id)

        paid = self._job_order()
        add_payment(self.db, order_type=OrderType.JOB_ORDER, order_id=paid.id, payment=self._payment(paid, '10.00'))
        with self.assertRaises(InvalidStateError):
            delete_job_order(self.db, job_order_id=paid.id)

    def test_cancelled_sale_cannot_be_reopened(self) -> None:
        order = create_sales_order(
            self.db,
            items=[PartLineInput(part_id=self.part.id, quantity=1)],
            created_by_user_id='cashier-1',
        )
        update_sales_order_status(self.db, sales_order_id=order.id, status=SalesOrderStatus.CANCELLED)
        with self.assertRaises(InvalidStateError):
            update_sales_order_status(self.db, sales_order_id=order.id, status=SalesOrderStatus.COMPLETED)

    def test_order_detail_and_filters(self) -> None:
        order = self._job_order(status=JobOrderStatus.IN_PROGRESS)
        self._job_order()
        detail = get_order_detail(self.db, order_type=OrderType.JOB_ORDER, order_id=order.id)
        self.assertIs(detail['order'], order)
        self.assertEqual(detail['balance_due'], Decimal('1000.00'))
        self.assertEqual(len(detail['services']), 1)
        self.assertEqual(detail['parts'], [])
        in_progress = list_orders(self.db, order_type=OrderType.JOB_ORDER, status=JobOrderStatus.IN_PROGRESS)
        self.assertEqual([o.id for o in in_progress], [order.id])
        self.assertEqual(len(list_orders(self.db, order_type=OrderType.JOB_ORDER, customer_id=self.customer.id)), 2)


if __name__ == '__main__':
    unittest.main()
