from __future__ import annotations

import unittest
from decimal import Decimal

from torquetrack.errors import ValidationError
from torquetrack.models import PaymentStatus
from torquetrack.services.document_math_service import (
    LineAmount,
    balance_due,
    compute_line_total,
    compute_order_totals,
    compute_purchase_order_totals,
    derive_payment_status,
    to_money,
    validate_quantity,
)


class DocumentMathServiceTests(unittest.TestCase):
    def test_to_money_rounds_half_up_to_cents(self) -> None:
        self.assertEqual(to_money('2.345'), Decimal('2.35'))
        self.assertEqual(to_money(1), Decimal('1.00'))
        self.assertEqual(to_money(None), Decimal('0.00'))

    def test_validate_quantity_rejects_fractions_and_small_values(self) -> None:
        self.assertEqual(validate_quantity(3), 3)
        with self.assertRaises(ValidationError):
            validate_quantity(0)
        with self.assertRaises(ValidationError):
            validate_quantity(1.5)
        self.assertEqual(validate_quantity(0, minimum=0), 0)

    def test_line_total_is_quantity_times_unit_price(self) -> None:
        self.assertEqual(compute_line_total(LineAmount(3, Decimal('15.99'))), Decimal('47.97'))

    def test_line_total_mismatch_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            compute_line_total(LineAmount(2, Decimal('10.00'), total_price=Decimal('25.00')))

    def test_negative_unit_price_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            compute_line_total(LineAmount(1, Decimal('-1.00')))

    def test_purchase_order_fallback_tax(self) -> None:
        totals = compute_purchase_order_totals(
            [LineAmount(50, Decimal('8.00'))],
            tax_amount=None,
            shipping_cost=None,
            fallback_tax_rate=Decimal('10'),
        )
        self.assertEqual(totals.sub_total, Decimal('400.00'))
        self.assertEqual(totals.tax_amount, Decimal('40.00'))
        self.assertFalse(totals.tax_is_explicit)
        self.assertEqual(totals.grand_total, Decimal('440.00'))

    def test_purchase_order_explicit_tax_and_shipping(self) -> None:
        totals = compute_purchase_order_totals(
            [LineAmount(2, Decimal('10.00')), LineAmount(1, Decimal('5.50'))],
            tax_amount=Decimal('0'),
            shipping_cost=Decimal('7.25'),
            fallback_tax_rate=Decimal('10'),
        )
        self.assertEqual(totals.sub_total, Decimal('25.50'))
        self.assertEqual(totals.tax_amount, Decimal('0.00'))
        self.assertTrue(totals.tax_is_explicit)
        self.assertEqual(totals.grand_total, totals.sub_total + totals.tax_amount + totals.shipping_cost)

    def test_order_totals_apply_rate_after_discount(self) -> None:
        totals = compute_order_totals(
            labor_costs=[Decimal('500.00')],
            part_lines=[LineAmount(2, Decimal('250.00'))],
            discount_amount=Decimal('100.00'),
            tax_amount=None,
            tax_rate=Decimal('12'),
        )
        self.assertEqual(totals.labor_total, Decimal('500.00'))
        self.assertEqual(totals.parts_total, Decimal('500.00'))
        self.assertEqual(totals.tax_amount, Decimal('108.00'))  # 12% of 900
        self.assertEqual(totals.grand_total, Decimal('1008.00'))

    def test_discount_larger_than_subtotal_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            compute_order_totals(
                labor_costs=[Decimal('10.00')],
                part_lines=[],
                discount_amount=Decimal('20.00'),
                tax_amount=None,
                tax_rate=Decimal('12'),
            )

    def test_payment_status_rule(self) -> None:
        self.assertEqual(derive_payment_status(Decimal('0.00'), Decimal('0.00')), PaymentStatus.PAID)
        self.assertEqual(derive_payment_status(Decimal('1000.00'), Decimal('0.00')), PaymentStatus.UNPAID)
        self.assertEqual(derive_payment_status(Decimal('1000.00'), Decimal('400.00')), PaymentStatus.PARTIAL)
        self.assertEqual(derive_payment_status(Decimal('1000.00'), Decimal('1000.00')), PaymentStatus.PAID)
        self.assertEqual(derive_payment_status(Decimal('1000.00'), Decimal('1200.00')), PaymentStatus.PAID)

    def test_payment_status_tolerates_sub_epsilon_shortfall(self) -> None:
        self.assertEqual(derive_payment_status(Decimal('10.0005'), Decimal('10.00')), PaymentStatus.PAID)
        self.assertEqual(derive_payment_status(Decimal('10.01'), Decimal('10.00')), PaymentStatus.PARTIAL)

    def test_balance_due_never_negative(self) -> None:
        self.assertEqual(balance_due(Decimal('1000.00'), Decimal('400.00')), Decimal('600.00'))
        self.assertEqual(balance_due(Decimal('100.00'), Decimal('150.00')), Decimal('0.00'))


if __name__ == '__main__':
    unittest.main()
