"""
Invoice lifecycle

draft -> pending (sent) -> paid, with cancelled as the other terminal state.
Overdue is never stored; it is derived from the due date and the balance.
"""
import logging
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import transaction
from app.core.exceptions import NotFound, ValidationError
from app.crud.invoice import InvoiceCRUD
from app.models.invoice import Invoice, InvoiceItem, InvoicePayment
from app.models.quotation import Quotation
from app.schemas.invoice import InvoiceCreate, InvoiceItemCreate, InvoiceUpdate, MarkPaidRequest, PaymentCreate
from app.services.money import (
    ZERO,
    balance_due,
    compute_discount,
    compute_document_totals,
    compute_line_total,
    payment_status_for,
    quantize,
    sum_amounts,
    to_decimal,
)
from app.services.numbering import ReferenceGenerator, TimestampReferenceGenerator, generate_unique
from app.services.status import (
    InvoiceStatus,
    PaymentStatus,
    check_invoice_deletable,
    check_invoice_editable,
    check_invoice_payable,
    check_invoice_sendable,
    check_invoice_status_change,
    check_quotation_convertible,
    parse_invoice_status,
)

logger = logging.getLogger(__name__)

FINANCIAL_FIELDS = ("subtotal", "tax_rate", "discount_type", "discount_value", "shipping_amount")
SNAPSHOT_FIELDS = (
    "customer_name",
    "customer_email",
    "customer_phone",
    "customer_company",
    "customer_address",
    "customer_tax_id",
    "issue_date",
    "due_date",
    "notes",
    "terms_conditions",
    "admin_notes",
)


class InvoiceService:
    """Invoice operations bound to one database session"""

    def __init__(
        self,
        db: Session,
        references: Optional[ReferenceGenerator] = None,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.references = references or TimestampReferenceGenerator()
        self.today = today

    # -------------------------
    # LOOKUPS
    # -------------------------
    def get(self, invoice_id) -> Invoice:
        invoice = self.db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFound("Invoice not found")
        return invoice

    def get_by_number(self, invoice_number: str) -> Invoice:
        invoice = self.db.query(Invoice).filter(Invoice.invoice_number == invoice_number).first()
        if not invoice:
            raise NotFound("Invoice not found")
        return invoice

    def view(self, invoice_id) -> Invoice:
        """Admin read that stamps viewed_at the first time"""
        invoice = self.get(invoice_id)
        if invoice.viewed_at is None:
            with transaction(self.db):
                invoice.viewed_at = datetime.utcnow()
            self.db.refresh(invoice)
        return invoice

    def list_invoices(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        customer: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[Invoice]:
        if status and status not in ("all", InvoiceStatus.OVERDUE.value):
            parse_invoice_status(status)
        return InvoiceCRUD.list_invoices(
            self.db, self.today(), status, search, customer, date_from, date_to
        )

    def list_payments(self, invoice_id) -> List[InvoicePayment]:
        invoice = self.get(invoice_id)
        return InvoiceCRUD.list_payments(self.db, invoice.id)

    def stats(self) -> dict:
        return InvoiceCRUD.get_stats(self.db, self.today())

    # -------------------------
    # CREATION
    # -------------------------
    def build_invoice(self, payload: InvoiceCreate, created_by=None) -> Invoice:
        """
        Price the payload and return an unsaved draft invoice

        Raises:
            ValidationError: missing customer details or bad amounts
        """
        if not (payload.customer_name or "").strip() or not (payload.customer_email or "").strip():
            raise ValidationError("Customer name and email are required")

        tax_rate = payload.tax_rate if payload.tax_rate is not None else settings.DEFAULT_TAX_RATE
        payment_terms = payload.payment_terms if payload.payment_terms is not None else settings.DEFAULT_PAYMENT_TERMS
        issue_date = payload.issue_date or self.today()
        due_date = payload.due_date or issue_date + timedelta(days=payment_terms)
        shipping = quantize(payload.shipping_amount)
        if shipping < 0:
            raise ValidationError("Shipping amount cannot be negative")

        items = self._build_items(payload.items, tax_rate)
        if payload.subtotal is not None:
            subtotal = quantize(payload.subtotal)
        else:
            subtotal = sum_amounts(i.unit_price * i.quantity for i in items)
        if subtotal < 0:
            raise ValidationError("Subtotal cannot be negative")

        discount_amount = compute_discount(subtotal, payload.discount_type, payload.discount_value)
        totals = compute_document_totals(
            subtotal,
            discount_amount,
            shipping,
            tax_rate,
            tax_amount=payload.tax_amount,
            total=payload.total,
        )
        if totals.overridden:
            logger.info(f"Invoice totals supplied by caller for {payload.customer_email}")

        invoice_number = self._new_invoice_number(issue_date.year)
        return Invoice(
            id=uuid.uuid4(),
            invoice_number=invoice_number,
            quotation_id=payload.quotation_id,
            quotation_reference=payload.quotation_reference,
            status=InvoiceStatus.DRAFT.value,
            payment_status=PaymentStatus.UNPAID.value,
            customer_name=payload.customer_name.strip(),
            customer_email=payload.customer_email.strip(),
            customer_phone=payload.customer_phone,
            customer_company=payload.customer_company,
            customer_address=payload.customer_address,
            customer_tax_id=payload.customer_tax_id,
            issue_date=issue_date,
            due_date=due_date,
            payment_terms=payment_terms,
            subtotal=subtotal,
            tax_rate=quantize(tax_rate),
            tax_amount=totals.tax_amount,
            discount_type=payload.discount_type if payload.discount_type != "none" else None,
            discount_value=quantize(payload.discount_value),
            discount_amount=discount_amount,
            shipping_amount=shipping,
            total=totals.total,
            amount_paid=ZERO,
            balance_due=totals.total,
            totals_overridden=totals.overridden,
            notes=payload.notes,
            terms_conditions=payload.terms_conditions,
            created_by=created_by,
            items=items,
        )

    def create(self, payload: InvoiceCreate, created_by=None) -> Invoice:
        """Create a draft invoice; a linked quotation is converted in the same commit"""
        quotation = None
        if payload.quotation_id is not None:
            quotation = self.db.query(Quotation).filter(Quotation.id == payload.quotation_id).first()
            if not quotation:
                raise NotFound("Quotation not found")
            check_quotation_convertible(quotation, self.today())
            if not payload.quotation_reference:
                payload = payload.model_copy(update={"quotation_reference": quotation.quotation_id})

        invoice = self.build_invoice(payload, created_by=created_by)

        with transaction(self.db):
            self.db.add(invoice)
            self.db.flush()
            if quotation is not None:
                from app.services.quotation_service import QuotationService

                QuotationService(self.db, self.references, self.today).mark_converted(quotation, invoice)

        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} created for {invoice.customer_email}")
        return invoice

    def duplicate(self, invoice_id) -> Invoice:
        """Fresh unpaid draft with the same customer, figures and items"""
        original = self.get(invoice_id)
        issue_date = self.today()

        copy = Invoice(
            id=uuid.uuid4(),
            invoice_number=self._new_invoice_number(issue_date.year),
            quotation_id=None,
            quotation_reference=f"Copy of {original.invoice_number}",
            status=InvoiceStatus.DRAFT.value,
            payment_status=PaymentStatus.UNPAID.value,
            customer_name=original.customer_name,
            customer_email=original.customer_email,
            customer_phone=original.customer_phone,
            customer_company=original.customer_company,
            customer_address=original.customer_address,
            customer_tax_id=original.customer_tax_id,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=original.payment_terms),
            payment_terms=original.payment_terms,
            subtotal=original.subtotal,
            tax_rate=original.tax_rate,
            tax_amount=original.tax_amount,
            discount_type=original.discount_type,
            discount_value=original.discount_value,
            discount_amount=original.discount_amount,
            shipping_amount=original.shipping_amount,
            total=original.total,
            amount_paid=ZERO,
            balance_due=original.total,
            totals_overridden=original.totals_overridden,
            notes=f"Duplicated from {original.invoice_number}\n\n{original.notes or ''}".rstrip(),
            terms_conditions=original.terms_conditions,
            admin_notes=original.admin_notes,
            created_by=original.created_by,
            items=[
                InvoiceItem(
                    product_id=item.product_id,
                    item_type=item.item_type,
                    item_name=item.item_name,
                    description=item.description,
                    quantity=item.quantity,
                    unit=item.unit,
                    unit_price=item.unit_price,
                    discount_percent=item.discount_percent,
                    discount_amount=item.discount_amount,
                    tax_rate=item.tax_rate,
                    tax_amount=item.tax_amount,
                    total=item.total,
                    sort_order=item.sort_order,
                )
                for item in original.items
            ],
        )

        with transaction(self.db):
            self.db.add(copy)

        self.db.refresh(copy)
        logger.info(f"Invoice {original.invoice_number} duplicated as {copy.invoice_number}")
        return copy

    # -------------------------
    # UPDATES
    # -------------------------
    def update(self, invoice_id, data: InvoiceUpdate) -> Invoice:
        """
        Apply a partial update

        Paid invoices are frozen and cancelled ones cannot be reopened.
        Changing any financial input or the item list re-prices the invoice
        unless tax_amount/total are given explicitly; balance and payment
        status follow the new total.

        Raises:
            ValidationError: cleared required field, negative amounts or
                amount_paid above the new total
            InvalidState: invoice is paid, or cancelled and asked to move on
        """
        invoice = self.get(invoice_id)
        check_invoice_editable(invoice)

        fields = data.model_dump(exclude_unset=True, exclude={"items"})
        items = data.items if "items" in data.model_fields_set else None
        status = fields.pop("status", None)
        amount_paid = fields.pop("amount_paid", None)
        tax_override = fields.pop("tax_amount", None)
        total_override = fields.pop("total", None)

        target = parse_invoice_status(status) if status is not None else None
        check_invoice_status_change(invoice, target)
        if amount_paid is not None:
            check_invoice_payable(invoice)

        for name in ("customer_name", "customer_email"):
            if name in fields and not (fields[name] or "").strip():
                raise ValidationError("Customer name and email are required")
        for name in ("issue_date", "due_date"):
            if name in fields and fields[name] is None:
                raise ValidationError("Issue date and due date cannot be cleared")
        if amount_paid is not None and quantize(amount_paid) < quantize(invoice.amount_paid):
            raise ValidationError("Amount paid cannot decrease")
        issue_date = fields.get("issue_date", invoice.issue_date)
        due_date = fields.get("due_date", invoice.due_date)
        if due_date < issue_date:
            raise ValidationError("Due date must be on or after issue date")

        tax_rate = fields.get("tax_rate")
        if tax_rate is None:
            tax_rate = invoice.tax_rate
        new_items = self._build_items(items, tax_rate) if items is not None else None

        priced = None
        if (
            new_items is not None
            or any(name in fields for name in FINANCIAL_FIELDS)
            or tax_override is not None
            or total_override is not None
        ):
            items_subtotal = None
            if new_items is not None:
                items_subtotal = sum_amounts(i.unit_price * i.quantity for i in new_items)
            priced = self._price(invoice, fields, items_subtotal, tax_override, total_override)

        new_total = priced["total"] if priced is not None else quantize(invoice.total)
        new_paid = quantize(amount_paid if amount_paid is not None else invoice.amount_paid)
        if new_paid > new_total:
            raise ValidationError("Amount paid cannot exceed the invoice total")

        with transaction(self.db):
            for name in SNAPSHOT_FIELDS:
                if name in fields:
                    setattr(invoice, name, fields[name])

            if target is not None and target != InvoiceStatus.PAID:
                invoice.status = target.value

            if new_items is not None:
                invoice.items.clear()
                self.db.flush()
                invoice.items.extend(new_items)

            if priced is not None:
                for name, value in priced.items():
                    setattr(invoice, name, value)

            if priced is not None or amount_paid is not None:
                invoice.amount_paid = new_paid
                self._settle_balance(invoice, paid_on=self.today())

            if target == InvoiceStatus.PAID and invoice.status != InvoiceStatus.PAID.value:
                self._pay_in_full(invoice, "other", None, self.today(), "Marked as paid", None)

        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} updated")
        return invoice

    def mark_as_sent(self, invoice_id) -> Invoice:
        invoice = self.get(invoice_id)
        check_invoice_sendable(invoice)
        with transaction(self.db):
            invoice.status = InvoiceStatus.PENDING.value
            invoice.sent_at = datetime.utcnow()
        self.db.refresh(invoice)
        return invoice

    def delete(self, invoice_id) -> None:
        invoice = self.get(invoice_id)
        check_invoice_deletable(invoice)
        with transaction(self.db):
            self.db.query(Quotation).filter(
                Quotation.converted_to_invoice_id == invoice.id
            ).update({Quotation.converted_to_invoice_id: None}, synchronize_session=False)
            self.db.delete(invoice)
        logger.info(f"Invoice {invoice.invoice_number} deleted")

    # -------------------------
    # PAYMENTS
    # -------------------------
    def record_payment(self, invoice_id, data: PaymentCreate, received_by=None) -> Tuple[Invoice, InvoicePayment]:
        """
        Append a payment and move the running balance

        Raises:
            ValidationError: amount is not positive or exceeds the balance due
            InvalidState: invoice is cancelled
        """
        invoice = self.get(invoice_id)
        check_invoice_payable(invoice)

        amount = quantize(data.amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")
        if amount > quantize(invoice.balance_due):
            raise ValidationError("Payment amount exceeds balance due")

        with transaction(self.db):
            payment = self._apply_payment(
                invoice,
                amount,
                data.payment_method,
                data.reference_number,
                data.payment_date or self.today(),
                data.notes,
                received_by,
            )

        self.db.refresh(invoice)
        self.db.refresh(payment)
        logger.info(
            f"Payment of {amount} recorded on {invoice.invoice_number}, balance {invoice.balance_due}"
        )
        return invoice, payment

    def mark_as_paid(self, invoice_id, data: Optional[MarkPaidRequest] = None, received_by=None) -> Invoice:
        """
        Settle the whole balance with one payment

        Calling it on an invoice that is already paid changes nothing.
        """
        data = data or MarkPaidRequest()
        invoice = self.get(invoice_id)
        if invoice.status == InvoiceStatus.PAID.value:
            logger.info(f"Invoice {invoice.invoice_number} already paid, nothing recorded")
            return invoice
        check_invoice_payable(invoice)

        with transaction(self.db):
            self._pay_in_full(
                invoice,
                data.payment_method,
                data.reference_number,
                data.payment_date or self.today(),
                "Full payment recorded",
                received_by,
            )

        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} marked as paid")
        return invoice

    # -------------------------
    # HELPERS
    # -------------------------
    def _new_invoice_number(self, year: int) -> str:
        return generate_unique(
            lambda: self.references.invoice_number(year),
            lambda number: self.db.query(Invoice.id).filter(Invoice.invoice_number == number).first() is not None,
            settings.REFERENCE_RETRY_ATTEMPTS,
        )

    def _build_items(self, items: List[InvoiceItemCreate], default_tax_rate) -> List[InvoiceItem]:
        built = []
        for position, item in enumerate(items):
            tax_rate = item.tax_rate if item.tax_rate is not None else default_tax_rate
            amounts = compute_line_total(item.unit_price, item.quantity, tax_rate)
            built.append(InvoiceItem(
                product_id=item.product_id,
                quotation_item_id=item.quotation_item_id,
                item_type=item.item_type,
                item_name=item.item_name,
                description=item.description,
                quantity=item.quantity,
                unit=item.unit or "unit",
                unit_price=quantize(item.unit_price),
                discount_percent=item.discount_percent,
                discount_amount=quantize(item.discount_amount),
                tax_rate=quantize(tax_rate),
                tax_amount=amounts.tax_amount,
                total=amounts.total,
                sort_order=position,
            ))
        return built

    def _price(self, invoice: Invoice, fields: dict, items_subtotal, tax_override, total_override) -> dict:
        """Financial columns after applying fields, leaving the invoice untouched"""
        priced = {}
        for name in FINANCIAL_FIELDS:
            value = fields.get(name)
            if name == "discount_type":
                if name not in fields:
                    value = invoice.discount_type
                elif value == "none":
                    value = None
            elif value is None:
                value = getattr(invoice, name)
            priced[name] = value
        if items_subtotal is not None and fields.get("subtotal") is None:
            priced["subtotal"] = items_subtotal

        priced["subtotal"] = quantize(priced["subtotal"])
        priced["shipping_amount"] = quantize(priced["shipping_amount"])
        if priced["subtotal"] < 0:
            raise ValidationError("Subtotal cannot be negative")
        if priced["shipping_amount"] < 0:
            raise ValidationError("Shipping amount cannot be negative")

        priced["discount_amount"] = compute_discount(
            priced["subtotal"], priced["discount_type"], priced["discount_value"]
        )
        totals = compute_document_totals(
            priced["subtotal"],
            priced["discount_amount"],
            priced["shipping_amount"],
            priced["tax_rate"],
            tax_amount=tax_override,
            total=total_override,
        )
        priced["tax_amount"] = totals.tax_amount
        priced["total"] = totals.total
        priced["totals_overridden"] = totals.overridden
        return priced

    def _settle_balance(self, invoice: Invoice, paid_on: date) -> None:
        """Recompute balance_due and promote to paid once nothing is owed"""
        invoice.balance_due = balance_due(invoice.total, invoice.amount_paid)
        invoice.payment_status = payment_status_for(invoice.total, invoice.amount_paid)
        if invoice.payment_status == PaymentStatus.PAID.value and invoice.status != InvoiceStatus.CANCELLED.value:
            invoice.status = InvoiceStatus.PAID.value
            invoice.paid_date = paid_on

    def _apply_payment(
        self,
        invoice: Invoice,
        amount: Decimal,
        method: str,
        reference: Optional[str],
        paid_on: date,
        notes: Optional[str],
        received_by,
    ) -> InvoicePayment:
        payment = InvoicePayment(
            payment_date=paid_on,
            amount=amount,
            payment_method=method or "other",
            reference_number=reference,
            notes=notes,
            received_by=received_by,
        )
        invoice.payments.append(payment)
        invoice.amount_paid = quantize(to_decimal(invoice.amount_paid) + amount)
        self._settle_balance(invoice, paid_on)
        return payment

    def _pay_in_full(self, invoice, method, reference, paid_on, notes, received_by) -> None:
        outstanding = quantize(invoice.balance_due)
        if outstanding > 0:
            self._apply_payment(invoice, outstanding, method, reference, paid_on, notes, received_by)
        invoice.status = InvoiceStatus.PAID.value
        invoice.payment_status = PaymentStatus.PAID.value
        invoice.balance_due = ZERO
        invoice.paid_date = paid_on
