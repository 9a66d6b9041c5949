from __future__ import annotations

import unittest
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from torquetrack.db import build_engine, get_db, init_db
from torquetrack.main import app

HEADERS = {'X-User-Id': 'manager-1'}


class ShopApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = build_engine('sqlite+pysqlite:///:memory:')
        init_db(self.engine)
        testing_session = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False)

        def override_get_db():
            db = testing_session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.engine.dispose()

    def _post(self, path: str, payload: dict, expected: int = 201) -> dict:
        response = self.client.post(path, json=payload, headers=HEADERS)
        self.assertEqual(response.status_code, expected, response.text)
        return response.json()

    def _part(self, stock: int = 10, price: str = '15.99') -> dict:
        return self._post('/parts', {'name': 'Spark Plug NGK-CR8E', 'price': price, 'stock_quantity': stock})

    def _customer(self) -> dict:
        return self._post('/customers', {'first_name': 'John', 'last_name': 'Doe', 'phone': '555-1234'})

    def test_purchase_to_receipt_flow(self) -> None:
        part = self._part(stock=0)
        supplier = self._post('/suppliers', {'name': 'MotoSupplies Inc.'})
        detail = self._post(
            '/purchase-orders',
            {
                'supplier_id': supplier['id'],
                'status': 'Approved',
                'items': [{'part_id': part['id'], 'quantity': 50, 'unit_price': '8.00'}],
            },
        )
        po = detail['purchase_order']
        self.assertEqual(Decimal(po['sub_total']), Decimal('400.00'))
        self.assertEqual(Decimal(po['tax_amount']), Decimal('40.00'))
        self.assertEqual(Decimal(po['grand_total']), Decimal('440.00'))

        receipt = self._post(
            '/goods-receipts',
            {
                'purchase_order_id': po['id'],
                'items': [{'purchase_order_item_id': detail['items'][0]['id'], 'quantity_received': 50}],
            },
        )
        response = self.client.patch(
            f"/goods-receipts/{receipt['goods_receipt']['id']}",
            json={'status': 'Completed'},
            headers=HEADERS,
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertIsNotNone(response.json()['goods_receipt']['stock_credited_at'])

        self.assertEqual(self.client.get(f"/parts/{part['id']}").json()['stock_quantity'], 50)
        self.assertEqual(self.client.get(f"/purchase-orders/{po['id']}").json()['purchase_order']['status'], 'Fully Received')

        response = self.client.delete(f"/purchase-orders/{po['id']}")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'INVALID_STATE')

    def test_sale_debits_stock_and_overdraw_is_rolled_back(self) -> None:
        part = self._part(stock=10)
        sale = self._post('/sales-orders', {'items': [{'part_id': part['id'], 'quantity': 4}]})
        self.assertEqual(sale['order']['customer_name'], 'Walk-in Customer')
        self.assertEqual(sale['order']['payment_status'], 'Paid')
        self.assertEqual(len(sale['payment_history']), 1)
        self.assertEqual(self.client.get(f"/parts/{part['id']}").json()['stock_quantity'], 6)

        response = self.client.post(
            '/sales-orders',
            json={'items': [{'part_id': part['id'], 'quantity': 7}]},
            headers=HEADERS,
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'INSUFFICIENT_STOCK')
        self.assertEqual(self.client.get(f"/parts/{part['id']}").json()['stock_quantity'], 6)
        self.assertEqual(len(self.client.get('/sales-orders').json()), 1)

    def test_job_order_payments(self) -> None:
        customer = self._customer()
        job = self._post(
            '/job-orders',
            {
                'customer_id': customer['id'],
                'services': [{'service_name': 'Engine Tune-up', 'labor_cost': '1000.00'}],
                'tax_amount': '0',
            },
        )
        order_id = job['order']['id']
        self.assertEqual(job['order']['payment_status'], 'Unpaid')

        self._post('/payments', {'order_type': 'JobOrder', 'order_id': order_id, 'amount': '400.00', 'method': 'Cash'})
        detail = self.client.get(f'/job-orders/{order_id}').json()
        self.assertEqual(detail['order']['payment_status'], 'Partial')
        self.assertEqual(Decimal(detail['balance_due']), Decimal('600.00'))

        payment = {
            'order_type': 'JobOrder',
            'order_id': order_id,
            'amount': '600.00',
            'method': 'Debit Card',
            'payment_id': 'pos-0001',
        }
        self._post('/payments', payment)
        self._post('/payments', payment)
        detail = self.client.get(f'/job-orders/{order_id}').json()
        self.assertEqual(detail['order']['payment_status'], 'Paid')
        self.assertEqual(Decimal(detail['order']['amount_paid']), Decimal('1000.00'))
        self.assertEqual(Decimal(detail['balance_due']), Decimal('0.00'))
        self.assertEqual(len(detail['payment_history']), 2)

        response = self.client.delete(f'/job-orders/{order_id}')
        self.assertEqual(response.status_code, 409)

    def test_job_order_for_another_customers_motorcycle_is_rejected(self) -> None:
        owner = self._customer()
        other = self._post('/customers', {'first_name': 'Alice', 'last_name': 'Johnson', 'phone': '555-8765'})
        bike = self._post(
            '/motorcycles',
            {'customer_id': owner['id'], 'make': 'Kawasaki', 'model': 'Ninja 400', 'plate_number': 'NIN-400'},
        )
        mechanic = self._post('/mechanics', {'name': 'Maria Santos'})
        self.assertEqual(len(self.client.get('/motorcycles', params={'customer_id': owner['id']}).json()), 1)

        response = self.client.post(
            '/job-orders',
            json={'customer_id': other['id'], 'motorcycle_id': bike['id']},
            headers=HEADERS,
        )
        self.assertEqual(response.status_code, 422)

        job = self._post(
            '/job-orders',
            {
                'customer_id': owner['id'],
                'motorcycle_id': bike['id'],
                'services': [
                    {'service_name': 'Chain Adjustment', 'labor_cost': '300.00', 'assigned_mechanic_id': mechanic['id']}
                ],
            },
        )
        self.assertEqual(job['order']['motorcycle_id'], bike['id'])
        self.assertEqual(job['services'][0]['assigned_mechanic_id'], mechanic['id'])

        self._post(f"/mechanics/{mechanic['id']}/active", {'is_active': False}, expected=200)
        response = self.client.post(
            '/job-orders',
            json={
                'customer_id': owner['id'],
                'services': [
                    {'service_name': 'Chain Adjustment', 'labor_cost': '300.00', 'assigned_mechanic_id': mechanic['id']}
                ],
            },
            headers=HEADERS,
        )
        self.assertEqual(response.status_code, 409)

    def test_zero_value_job_order_reads_as_paid(self) -> None:
        customer = self._customer()
        job = self._post('/job-orders', {'customer_id': customer['id']})
        detail = self.client.get(f"/job-orders/{job['order']['id']}").json()
        self.assertEqual(detail['order']['payment_status'], 'Paid')

    def test_error_mapping(self) -> None:
        response = self.client.get('/parts/missing')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error'], 'NOT_FOUND')

        part = self._part(stock=1)
        response = self.client.post(
            f"/parts/{part['id']}/adjust-stock",
            json={'adjustment_type': 'ADD', 'quantity': 1, 'reason': ''},
            headers=HEADERS,
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()['error'], 'VALIDATION_ERROR')

        response = self.client.post(
            f"/parts/{part['id']}/adjust-stock",
            json={'adjustment_type': 'REMOVE', 'quantity': 2, 'reason': 'Damaged'},
            headers=HEADERS,
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'INSUFFICIENT_STOCK')

        response = self.client.post(
            f"/parts/{part['id']}/adjust-stock",
            json={'adjustment_type': 'ADD', 'quantity': 4, 'reason': 'Found in back room'},
            headers=HEADERS,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['stock_quantity'], 5)

    def test_requisition_to_purchase_order(self) -> None:
        part = self._part()
        supplier = self._post('/suppliers', {'name': 'Speedy Spares Ltd.'})
        requisition = self._post(
            '/requisitions',
            {'items': [{'part_id': part['id'], 'quantity': 5, 'estimated_price_per_unit': '8.00'}]},
        )
        requisition_id = requisition['requisition']['id']
        self.assertEqual(Decimal(requisition['requisition']['total_estimated_value']), Decimal('40.00'))

        approved = self._post(f'/requisitions/{requisition_id}/status', {'status': 'Approved'}, expected=200)
        self.assertEqual(approved['approved_by_user_id'], 'manager-1')

        po = self._post(
            '/purchase-orders/from-requisition',
            {'requisition_id': requisition_id, 'supplier_id': supplier['id']},
        )
        self.assertEqual(Decimal(po['purchase_order']['grand_total']), Decimal('44.00'))
        status = self.client.get(f'/requisitions/{requisition_id}').json()['requisition']['status']
        self.assertEqual(status, 'Ordered')

    def test_health(self) -> None:
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')


if __name__ == '__main__':
    unittest.main()
