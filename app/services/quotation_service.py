"""
Quotation lifecycle

submit -> (view) -> processing -> convert to invoice, with expired and
cancelled as the other terminal branches. Every state change that matters to
the back office leaves a notification behind.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import transaction
from app.core.exceptions import NotFound, ValidationError
from app.crud.quotation import QuotationCRUD
from app.models.invoice import Invoice
from app.models.quotation import Quotation, QuotationItem, QuotationNotification
from app.schemas.invoice import InvoiceCreate, InvoiceItemCreate
from app.schemas.quotation import ConvertToInvoiceRequest, QuotationSubmit
from app.services.invoice_service import InvoiceService
from app.services.money import (
    HUNDRED,
    compute_document_totals,
    compute_line_total,
    quantize,
    sum_amounts,
)
from app.services.numbering import ReferenceGenerator, TimestampReferenceGenerator, generate_unique
from app.services.status import (
    QuotationStatus,
    check_quotation_convertible,
    check_quotation_transition,
    parse_quotation_status,
)

logger = logging.getLogger(__name__)


class QuotationService:
    """Quotation operations bound to one database session"""

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
    def get(self, quotation_id) -> Quotation:
        quotation = self.db.query(Quotation).filter(Quotation.id == quotation_id).first()
        if not quotation:
            raise NotFound("Quotation not found")
        return quotation

    def track(self, reference: str) -> Quotation:
        """Public lookup by the KAY- reference printed for the customer"""
        quotation = self.db.query(Quotation).filter(Quotation.quotation_id == reference).first()
        if not quotation:
            raise NotFound("Quotation not found")
        return quotation

    def list_quotations(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[Tuple[Quotation, int]]:
        if status and status != "all":
            parse_quotation_status(status)
        return QuotationCRUD.list_quotations(self.db, status, search, date_from, date_to)

    def view(self, quotation_id) -> Quotation:
        """
        Admin read that also records the first view

        A pending quotation moves to viewed and gets exactly one viewed
        notification; any other state is returned untouched.
        """
        quotation = self.get(quotation_id)
        if quotation.status != QuotationStatus.PENDING.value:
            return quotation

        with transaction(self.db):
            quotation.status = QuotationStatus.VIEWED.value
            quotation.viewed_at = datetime.utcnow()
            already_notified = self.db.query(QuotationNotification.id).filter(
                QuotationNotification.quotation_id == quotation.id,
                QuotationNotification.notification_type == "viewed"
            ).first()
            if not already_notified:
                self._notify(quotation, "viewed")

        self.db.refresh(quotation)
        return quotation

    # -------------------------
    # SUBMISSION
    # -------------------------
    def submit(self, payload: QuotationSubmit) -> Quotation:
        """Create a pending quotation from the public cart page"""
        customer = payload.customer
        if not (customer.name or "").strip() or not (customer.email or "").strip():
            raise ValidationError("Customer name and email are required")
        if not payload.items:
            raise ValidationError("Quotation must have at least one item")

        subtotal = quantize(payload.subtotal)
        vat = quantize(payload.vat)
        total = quantize(payload.total)
        if subtotal < 0 or vat < 0 or total < 0:
            raise ValidationError("Amounts cannot be negative")
        if subtotal + vat != total:
            raise ValidationError("Total must equal subtotal plus VAT")

        items = []
        for position, item in enumerate(payload.items):
            amounts = compute_line_total(item.price, item.quantity)
            items.append(QuotationItem(
                product_id=item.id,
                product_name=item.name,
                description=item.description,
                quantity=item.quantity,
                unit=item.unit or "unit",
                unit_price=quantize(item.price),
                total=quantize(item.total) if item.total is not None else amounts.amount,
                is_service=item.is_service,
                category=item.category,
                sort_order=position,
            ))

        items_total = sum_amounts(i.total for i in items)
        if items_total != subtotal:
            logger.warning(
                f"Quotation items total {items_total} does not reconcile with subtotal {subtotal}"
            )

        reference = generate_unique(
            self.references.quotation_reference,
            lambda ref: self.db.query(Quotation.id).filter(Quotation.quotation_id == ref).first() is not None,
            settings.REFERENCE_RETRY_ATTEMPTS,
        )

        quotation = Quotation(
            quotation_id=reference,
            status=QuotationStatus.PENDING.value,
            customer_name=customer.name.strip(),
            customer_email=customer.email.strip(),
            customer_phone=customer.phone,
            customer_company=customer.company,
            customer_project_name=customer.project_name,
            customer_delivery_address=customer.delivery_address,
            customer_notes=customer.notes or payload.notes,
            subtotal=subtotal,
            vat=vat,
            total=total,
            valid_until=self.today() + timedelta(days=settings.QUOTATION_VALIDITY_DAYS),
            items=items,
        )

        with transaction(self.db):
            self.db.add(quotation)
            self._notify(quotation, "new")

        self.db.refresh(quotation)
        logger.info(f"Quotation {reference} submitted by {quotation.customer_email}")
        return quotation

    # -------------------------
    # ADMIN CHANGES
    # -------------------------
    def update_status(self, quotation_id, status: str) -> Quotation:
        target = parse_quotation_status(status)
        quotation = self.get(quotation_id)
        check_quotation_transition(quotation.status, target)

        if quotation.status == target.value:
            return quotation

        with transaction(self.db):
            quotation.status = target.value
            if target == QuotationStatus.CONVERTED:
                quotation.converted_at = datetime.utcnow()
                self._notify(quotation, "converted")
            else:
                self._notify(quotation, "status_changed")

        self.db.refresh(quotation)
        logger.info(f"Quotation {quotation.quotation_id} status set to {target.value}")
        return quotation

    def update_notes(self, quotation_id, admin_notes: Optional[str]) -> Quotation:
        quotation = self.get(quotation_id)
        with transaction(self.db):
            quotation.admin_notes = admin_notes
        self.db.refresh(quotation)
        return quotation

    def convert_to_invoice(
        self,
        quotation_id,
        request: Optional[ConvertToInvoiceRequest] = None,
        created_by=None,
    ) -> Tuple[Quotation, Invoice]:
        """
        Create an invoice carrying the quoted items and figures

        The invoice insert and the quotation flip commit together.
        """
        request = request or ConvertToInvoiceRequest()
        quotation = self.get(quotation_id)
        check_quotation_convertible(quotation, self.today())

        invoices = InvoiceService(self.db, self.references, self.today)
        payload = self._invoice_payload(quotation, request)

        with transaction(self.db):
            invoice = invoices.build_invoice(payload, created_by=created_by)
            self.db.add(invoice)
            self.db.flush()
            self.mark_converted(quotation, invoice)

        self.db.refresh(quotation)
        self.db.refresh(invoice)
        logger.info(f"Quotation {quotation.quotation_id} converted to invoice {invoice.invoice_number}")
        return quotation, invoice

    def mark_converted(self, quotation: Quotation, invoice: Invoice) -> None:
        """Flip to converted inside the caller's transaction"""
        quotation.status = QuotationStatus.CONVERTED.value
        quotation.converted_at = datetime.utcnow()
        quotation.converted_to_invoice_id = invoice.id
        self._notify(quotation, "converted")

    def delete(self, quotation_id) -> None:
        quotation = self.get(quotation_id)
        with transaction(self.db):
            self.db.query(Invoice).filter(
                Invoice.quotation_id == quotation.id
            ).update({Invoice.quotation_id: None}, synchronize_session=False)
            self.db.delete(quotation)
        logger.info(f"Quotation {quotation.quotation_id} deleted")

    # -------------------------
    # NOTIFICATIONS
    # -------------------------
    def list_notifications(self, limit: Optional[int] = None):
        limit = limit or settings.NOTIFICATION_FEED_LIMIT
        return (
            QuotationCRUD.list_notifications(self.db, limit),
            QuotationCRUD.count_unread(self.db),
        )

    def mark_notification_read(self, notification_id) -> None:
        notification = self.db.query(QuotationNotification).filter(
            QuotationNotification.id == notification_id
        ).first()
        if not notification:
            raise NotFound("Notification not found")
        with transaction(self.db):
            notification.is_read = True

    def mark_all_notifications_read(self) -> int:
        with transaction(self.db):
            updated = self.db.query(QuotationNotification).filter(
                QuotationNotification.is_read.is_(False)
            ).update({QuotationNotification.is_read: True}, synchronize_session=False)
        return updated

    # -------------------------
    # HELPERS
    # -------------------------
    def _notify(self, quotation: Quotation, notification_type: str) -> None:
        quotation.notifications.append(
            QuotationNotification(notification_type=notification_type, is_read=False)
        )

    def _invoice_payload(self, quotation: Quotation, request: ConvertToInvoiceRequest) -> InvoiceCreate:
        subtotal = quantize(quotation.subtotal)
        vat = quantize(quotation.vat)
        if subtotal > 0:
            tax_rate = quantize(vat * HUNDRED / subtotal)
        else:
            tax_rate = settings.DEFAULT_TAX_RATE

        # Keep the quoted figures when the derived rate does not reproduce them
        computed = compute_document_totals(subtotal, 0, 0, tax_rate)
        reproduces = computed.tax_amount == vat and computed.total == quantize(quotation.total)

        return InvoiceCreate(
            quotation_id=quotation.id,
            quotation_reference=quotation.quotation_id,
            customer_name=quotation.customer_name,
            customer_email=quotation.customer_email,
            customer_phone=quotation.customer_phone,
            customer_company=quotation.customer_company,
            customer_address=quotation.customer_delivery_address,
            issue_date=request.issue_date,
            payment_terms=request.payment_terms,
            subtotal=subtotal,
            tax_rate=tax_rate,
            tax_amount=None if reproduces else vat,
            total=None if reproduces else quantize(quotation.total),
            items=[
                InvoiceItemCreate(
                    product_id=item.product_id,
                    quotation_item_id=item.id,
                    item_type="service" if item.is_service else "product",
                    item_name=item.product_name,
                    description=item.description,
                    quantity=item.quantity,
                    unit=item.unit,
                    unit_price=item.unit_price,
                    tax_rate=tax_rate,
                )
                for item in quotation.items
            ],
            notes=request.notes or quotation.customer_notes,
            terms_conditions=request.terms_conditions,
        )
