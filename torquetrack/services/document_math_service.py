from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from torquetrack.errors import ValidationError
from torquetrack.models import PaymentStatus

CENT = Decimal('0.01')
ZERO = Decimal('0.00')
PAYMENT_EPSILON = Decimal('0.001')


@dataclass(frozen=True)
class LineAmount:
    quantity: int
    unit_price: Decimal
    total_price: Decimal | None = None


@dataclass(frozen=True)
class PurchaseOrderTotals:
    sub_total: Decimal
    tax_amount: Decimal
    tax_is_explicit: bool
    shipping_cost: Decimal
    grand_total: Decimal


@dataclass(frozen=True)
class OrderTotals:
    labor_total: Decimal
    parts_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    grand_total: Decimal


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _non_negative_money(value: Decimal | int | float | str | None, *, field: str) -> Decimal:
    amount = to_money(value)
    if amount < 0:
        raise ValidationError(f'{field} cannot be negative')
    return amount


def validate_quantity(quantity: int, *, field: str = 'Quantity', minimum: int = 1) -> int:
    if isinstance(quantity, bool) or int(quantity) != quantity:
        raise ValidationError(f'{field} must be a whole number')
    if quantity < minimum:
        raise ValidationError(f'{field} must be at least {minimum}')
    return int(quantity)


def compute_line_total(line: LineAmount) -> Decimal:
    """Return ``quantity * unit_price`` for a line, rejecting inconsistent input.

    A caller-supplied ``total_price`` is accepted only when it matches the
    product exactly (after rounding to cents).
    """
    validate_quantity(line.quantity)
    unit_price = _non_negative_money(line.unit_price, field='Unit price')
    expected = to_money(unit_price * line.quantity)
    if line.total_price is not None and to_money(line.total_price) != expected:
        raise ValidationError(
            f'Line total {to_money(line.total_price)} does not match quantity {line.quantity} x unit price {unit_price}'
        )
    return expected


def _tax_from_rate(base: Decimal, rate_percent: Decimal) -> Decimal:
    if rate_percent < 0:
        raise ValidationError('Tax rate cannot be negative')
    if base <= 0 or rate_percent == 0:
        return ZERO
    return to_money(base * rate_percent / Decimal('100'))


def compute_purchase_order_totals(
    lines: list[LineAmount],
    *,
    tax_amount: Decimal | None,
    shipping_cost: Decimal | None,
    fallback_tax_rate: Decimal,
) -> PurchaseOrderTotals:
    sub_total = to_money(sum((compute_line_total(line) for line in lines), ZERO))
    shipping = _non_negative_money(shipping_cost, field='Shipping cost')
    if tax_amount is not None:
        tax = _non_negative_money(tax_amount, field='Tax amount')
        explicit = True
    else:
        # Purchase orders fall back to a flat rate on the subtotal.
        tax = _tax_from_rate(sub_total, fallback_tax_rate)
        explicit = False
    return PurchaseOrderTotals(
        sub_total=sub_total,
        tax_amount=tax,
        tax_is_explicit=explicit,
        shipping_cost=shipping,
        grand_total=to_money(sub_total + tax + shipping),
    )


def compute_order_totals(
    *,
    labor_costs: list[Decimal],
    part_lines: list[LineAmount],
    discount_amount: Decimal | None,
    tax_amount: Decimal | None,
    tax_rate: Decimal,
) -> OrderTotals:
    """Totals for job orders (labor + parts) and sales orders (parts only).

    Without an explicit tax amount, ``tax_rate`` percent is applied to the
    subtotal after discount.
    """
    labor_total = to_money(sum((_non_negative_money(cost, field='Labor cost') for cost in labor_costs), ZERO))
    parts_total = to_money(sum((compute_line_total(line) for line in part_lines), ZERO))
    discount = _non_negative_money(discount_amount, field='Discount amount')
    net = labor_total + parts_total - discount
    if net < 0:
        raise ValidationError('Discount cannot exceed the order subtotal')
    if tax_amount is not None:
        tax = _non_negative_money(tax_amount, field='Tax amount')
    else:
        tax = _tax_from_rate(net, tax_rate)
    return OrderTotals(
        labor_total=labor_total,
        parts_total=parts_total,
        discount_amount=discount,
        tax_amount=tax,
        grand_total=to_money(net + tax),
    )


def derive_payment_status(grand_total: Decimal, amount_paid: Decimal) -> PaymentStatus:
    if grand_total <= PAYMENT_EPSILON and amount_paid <= PAYMENT_EPSILON:
        return PaymentStatus.PAID
    if amount_paid >= grand_total - PAYMENT_EPSILON:
        return PaymentStatus.PAID
    if amount_paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def balance_due(grand_total: Decimal, amount_paid: Decimal) -> Decimal:
    return to_money(max(to_money(grand_total) - to_money(amount_paid), ZERO))
