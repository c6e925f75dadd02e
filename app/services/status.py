"""
Lifecycle states for quotations and invoices
"""
from datetime import date
from enum import Enum

from app.core.exceptions import InvalidState, ValidationError
from app.services.money import to_decimal


class QuotationStatus(str, Enum):
    PENDING = "pending"
    VIEWED = "viewed"
    PROCESSING = "processing"
    CONVERTED = "converted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    # Derived only, never stored
    OVERDUE = "overdue"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


QUOTATION_TERMINAL = {
    QuotationStatus.CONVERTED,
    QuotationStatus.EXPIRED,
    QuotationStatus.CANCELLED,
}

STORED_INVOICE_STATUSES = {
    InvoiceStatus.DRAFT,
    InvoiceStatus.PENDING,
    InvoiceStatus.PAID,
    InvoiceStatus.CANCELLED,
}


def parse_quotation_status(value: str) -> QuotationStatus:
    try:
        return QuotationStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value}")


def parse_invoice_status(value: str) -> InvoiceStatus:
    try:
        status = InvoiceStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value}")
    if status not in STORED_INVOICE_STATUSES:
        raise ValidationError(f"Status '{value}' is derived and cannot be set")
    return status


def quotation_is_expired(quotation, today: date) -> bool:
    """valid_until has passed and the quotation was never converted"""
    return (
        quotation.valid_until is not None
        and quotation.valid_until < today
        and quotation.status != QuotationStatus.CONVERTED.value
    )


def check_quotation_transition(current: str, target: QuotationStatus) -> None:
    """Terminal quotations only accept re-setting their own state"""
    if current == target.value:
        return
    if QuotationStatus(current) in QUOTATION_TERMINAL:
        raise InvalidState(f"Quotation is {current} and can no longer change status")


def check_quotation_convertible(quotation, today: date) -> None:
    if QuotationStatus(quotation.status) in QUOTATION_TERMINAL:
        raise InvalidState(f"Quotation is {quotation.status} and cannot be converted")
    if quotation_is_expired(quotation, today):
        raise InvalidState("Quotation validity period has passed")


def invoice_is_overdue(invoice, today: date) -> bool:
    return (
        invoice.due_date is not None
        and invoice.due_date < today
        and to_decimal(invoice.balance_due) > 0
        and invoice.status not in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value)
    )


def calculated_invoice_status(invoice, today: date) -> str:
    """Stored status, or overdue when the due date has passed unpaid"""
    if invoice_is_overdue(invoice, today):
        return InvoiceStatus.OVERDUE.value
    return invoice.status


def check_invoice_editable(invoice) -> None:
    if invoice.status == InvoiceStatus.PAID.value:
        raise InvalidState("Cannot update a paid invoice")


def check_invoice_status_change(invoice, target) -> None:
    """Cancelled invoices stay cancelled"""
    if target is None or target.value == invoice.status:
        return
    if invoice.status == InvoiceStatus.CANCELLED.value:
        raise InvalidState("Cannot change the status of a cancelled invoice")


def check_invoice_deletable(invoice) -> None:
    if invoice.status != InvoiceStatus.DRAFT.value:
        raise InvalidState("Only draft invoices can be deleted")


def check_invoice_sendable(invoice) -> None:
    if invoice.status != InvoiceStatus.DRAFT.value:
        raise InvalidState("Invoice has already been sent")


def check_invoice_payable(invoice) -> None:
    if invoice.status == InvoiceStatus.CANCELLED.value:
        raise InvalidState("Cannot record a payment on a cancelled invoice")
