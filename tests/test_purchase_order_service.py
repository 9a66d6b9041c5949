from __future__ import annotations

import unittest
from decimal import Decimal

from sqlalchemy.orm import Session

from torquetrack.db import build_engine, init_db
from torquetrack.errors import InvalidStateError, NotFoundError, ValidationError
from torquetrack.models import GoodsReceiptStatus, PurchaseOrderStatus, PurchaseRequisitionStatus
from torquetrack.services.directory_service import create_supplier
from torquetrack.services.goods_receipt_service import create_goods_receipt, update_goods_receipt
from torquetrack.services.inventory_service import create_part
from torquetrack.services.purchase_order_service import (
    PurchaseOrderLineInput,
    create_purchase_order,
    delete_purchase_order,
    get_purchase_order,
    get_purchase_order_items,
    list_receivable_purchase_orders,
    update_purchase_order,
)
from torquetrack.services.requisition_service import RequisitionItemInput, create_requisition


class PurchaseOrderServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = build_engine('sqlite+pysqlite:///:memory:')
        init_db(self.engine)
        self.db = Session(self.engine)
        self.supplier = create_supplier(self.db, name='MotoSupplies Inc.')
        self.part = create_part(self.db, name='Spark Plug NGK-CR8E', price=Decimal('15.99'), cost=Decimal('8.50'))

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _create(self, **kwargs):
        items = kwargs.pop('items', [PurchaseOrderLineInput(quantity=50, unit_price=Decimal('8.00'), part_id=self.part.id)])
        return create_purchase_order(
            self.db,
            supplier_id=self.supplier.id,
            items=items,
            created_by_user_id='manager-1',
            **kwargs,
        )

    def assertTotalsConsistent(self, po) -> None:
        items = get_purchase_order_items(self.db, po.id)
        self.assertEqual(po.sub_total, sum((item.total_price for item in items), Decimal('0.00')))
        self.assertEqual(po.grand_total, po.sub_total + po.tax_amount + po.shipping_cost)

    def test_fallback_tax_on_fifty_spark_plugs(self) -> None:
        po = self._create()
        self.assertEqual(po.sub_total, Decimal('400.00'))
        self.assertEqual(po.tax_amount, Decimal('40.00'))
        self.assertEqual(po.grand_total, Decimal('440.00'))
        self.assertEqual(get_purchase_order_items(self.db, po.id)[0].description, 'Spark Plug NGK-CR8E')
        self.assertTotalsConsistent(po)

    def test_shipping_is_added_to_grand_total(self) -> None:
        po = self._create(shipping_cost=Decimal('25.00'))
        self.assertEqual(po.grand_total, Decimal('465.00'))
        self.assertTotalsConsistent(po)

    def test_inconsistent_line_total_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self._create(
                items=[PurchaseOrderLineInput(quantity=2, unit_price=Decimal('8.00'), total_price=Decimal('15.00'), description='Plugs')]
            )

    def test_free_text_line_needs_description(self) -> None:
        with self.assertRaises(ValidationError):
            self._create(items=[PurchaseOrderLineInput(quantity=1, unit_price=Decimal('1.00'))])

    def test_unknown_supplier(self) -> None:
        with self.assertRaises(NotFoundError):
            create_purchase_order(
                self.db,
                supplier_id='missing',
                items=[PurchaseOrderLineInput(quantity=1, unit_price=Decimal('1.00'), description='x')],
                created_by_user_id='manager-1',
            )

    def test_update_recomputes_totals_and_keeps_explicit_tax(self) -> None:
        po = self._create(tax_amount=Decimal('12.00'))
        self.assertEqual(po.grand_total, Decimal('412.00'))

        update_purchase_order(
            self.db,
            purchase_order_id=po.id,
            items=[PurchaseOrderLineInput(quantity=10, unit_price=Decimal('8.00'), part_id=self.part.id)],
        )
        self.assertEqual(po.sub_total, Decimal('80.00'))
        self.assertEqual(po.tax_amount, Decimal('12.00'))
        self.assertEqual(po.grand_total, Decimal('92.00'))
        self.assertTotalsConsistent(po)

        update_purchase_order(self.db, purchase_order_id=po.id, tax_amount=None)
        self.assertEqual(po.tax_amount, Decimal('8.00'))
        self.assertEqual(po.grand_total, Decimal('88.00'))
        self.assertTotalsConsistent(po)

    def test_fallback_tax_follows_item_changes(self) -> None:
        po = self._create()
        update_purchase_order(
            self.db,
            purchase_order_id=po.id,
            items=[PurchaseOrderLineInput(quantity=5, unit_price=Decimal('8.00'), part_id=self.part.id)],
            shipping_cost=Decimal('3.00'),
        )
        self.assertEqual(po.tax_amount, Decimal('4.00'))
        self.assertEqual(po.grand_total, Decimal('47.00'))

    def test_received_statuses_cannot_be_set_by_hand(self) -> None:
        po = self._create()
        with self.assertRaises(InvalidStateError):
            update_purchase_order(self.db, purchase_order_id=po.id, status=PurchaseOrderStatus.FULLY_RECEIVED)

    def test_requisition_must_be_approved(self) -> None:
        requisition = create_requisition(
            self.db,
            items=[RequisitionItemInput(description='Plugs', quantity=1)],
            requested_by_user_id='mech-1',
        )
        with self.assertRaises(InvalidStateError):
            self._create(purchase_requisition_id=requisition.id)
        self.assertEqual(requisition.status, PurchaseRequisitionStatus.DRAFT)

    def test_received_purchase_order_cannot_be_deleted_or_edited(self) -> None:
        po = self._create(status=PurchaseOrderStatus.APPROVED)
        item = get_purchase_order_items(self.db, po.id)[0]
        create_goods_receipt(
            self.db,
            purchase_order_id=po.id,
            received_by_user_id='clerk-1',
            status=GoodsReceiptStatus.COMPLETED,
            items=None,
        )
        self.assertEqual(po.status, PurchaseOrderStatus.FULLY_RECEIVED)
        self.assertEqual(item.quantity, 50)

        with self.assertRaises(InvalidStateError):
            delete_purchase_order(self.db, purchase_order_id=po.id)
        with self.assertRaises(InvalidStateError):
            update_purchase_order(
                self.db,
                purchase_order_id=po.id,
                items=[PurchaseOrderLineInput(quantity=1, unit_price=Decimal('8.00'), part_id=self.part.id)],
            )
        with self.assertRaises(InvalidStateError):
            update_purchase_order(self.db, purchase_order_id=po.id, status=PurchaseOrderStatus.DRAFT)
        update_purchase_order(self.db, purchase_order_id=po.id, status=PurchaseOrderStatus.CLOSED)
        self.assertEqual(po.status, PurchaseOrderStatus.CLOSED)

    def test_items_are_locked_once_a_receipt_exists(self) -> None:
        po = self._create(status=PurchaseOrderStatus.APPROVED)
        item = get_purchase_order_items(self.db, po.id)[0]
        receipt = create_goods_receipt(self.db, purchase_order_id=po.id, received_by_user_id='clerk-1')

        with self.assertRaises(InvalidStateError):
            update_purchase_order(
                self.db,
                purchase_order_id=po.id,
                items=[PurchaseOrderLineInput(quantity=50, unit_price=Decimal('8.00'), part_id=self.part.id)],
            )
        self.assertEqual([row.id for row in get_purchase_order_items(self.db, po.id)], [item.id])

        # Header fields stay editable.
        update_purchase_order(self.db, purchase_order_id=po.id, notes='Call before delivery')
        self.assertEqual(po.notes, 'Call before delivery')

        update_goods_receipt(self.db, receipt_id=receipt.id, status=GoodsReceiptStatus.COMPLETED)
        self.assertEqual(po.status, PurchaseOrderStatus.FULLY_RECEIVED)

    def test_delete_draft_purchase_order(self) -> None:
        po = self._create()
        delete_purchase_order(self.db, purchase_order_id=po.id)
        with self.assertRaises(NotFoundError):
            get_purchase_order(self.db, po.id)

    def test_list_receivable_purchase_orders(self) -> None:
        self._create()
        approved = self._create(status=PurchaseOrderStatus.APPROVED)
        self.assertEqual([po.id for po in list_receivable_purchase_orders(self.db)], [approved.id])


if __name__ == '__main__':
    unittest.main()
