"""
Monetary calculations for quotations and invoices

Pure functions, no I/O. Every amount is a Decimal with two fraction digits;
float inputs are converted through str() so binary rounding never leaks in.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from app.core.exceptions import ValidationError

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

DISCOUNT_TYPES = ("none", "percentage", "fixed")


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert any accepted numeric input into an unrounded Decimal"""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Number) -> Decimal:
    """Round to cents, half up"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineAmounts:
    amount: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    tax_amount: Decimal
    total: Decimal
    overridden: bool = False


def compute_discount(base: Number, discount_type: Optional[str], value: Optional[Number]) -> Decimal:
    """
    Discount applied to a document subtotal

    percentage -> base * value / 100, fixed -> value, none/absent -> 0
    """
    value = to_decimal(value)
    if value < 0:
        raise ValidationError("Discount value cannot be negative")

    if discount_type == "percentage":
        return quantize(to_decimal(base) * value / HUNDRED)
    if discount_type == "fixed":
        return quantize(value)
    if discount_type in (None, "", "none"):
        return ZERO
    raise ValidationError(f"Unknown discount type: {discount_type}")


def compute_line_total(unit_price: Number, quantity: Number, tax_rate: Number = 0) -> LineAmounts:
    """Amount, tax and total for one line item"""
    unit_price = to_decimal(unit_price)
    quantity = to_decimal(quantity)
    tax_rate = to_decimal(tax_rate)

    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")
    if unit_price < 0:
        raise ValidationError("Unit price cannot be negative")
    if tax_rate < 0:
        raise ValidationError("Tax rate cannot be negative")

    amount = unit_price * quantity
    tax_amount = amount * tax_rate / HUNDRED
    return LineAmounts(
        amount=quantize(amount),
        tax_amount=quantize(tax_amount),
        total=quantize(amount + tax_amount),
    )


def compute_document_totals(
    subtotal: Number,
    discount_amount: Number = 0,
    shipping_amount: Number = 0,
    tax_rate: Number = 0,
    tax_amount: Optional[Number] = None,
    total: Optional[Number] = None,
) -> DocumentTotals:
    """
    Tax and grand total for a whole document

    A caller-supplied tax_amount or total takes precedence over the computed
    value. The result is flagged as overridden so it can be audited.
    """
    taxable = to_decimal(subtotal) - to_decimal(discount_amount) + to_decimal(shipping_amount)
    overridden = tax_amount is not None or total is not None

    if tax_amount is None:
        tax_amount = quantize(taxable * to_decimal(tax_rate) / HUNDRED)
    else:
        tax_amount = quantize(tax_amount)

    if total is None:
        total = quantize(taxable + tax_amount)
    else:
        total = quantize(total)

    return DocumentTotals(tax_amount=tax_amount, total=total, overridden=overridden)


def balance_due(total: Number, amount_paid: Number) -> Decimal:
    return quantize(to_decimal(total) - to_decimal(amount_paid))


def payment_status_for(total: Number, amount_paid: Number) -> str:
    """unpaid, partial or paid for the given running sum of payments"""
    if balance_due(total, amount_paid) <= 0:
        return "paid"
    if to_decimal(amount_paid) > 0:
        return "partial"
    return "unpaid"


def sum_amounts(values) -> Decimal:
    return quantize(sum((to_decimal(v) for v in values), Decimal("0")))
