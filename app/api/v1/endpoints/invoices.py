from fastapi import APIRouter, Depends, Query, status
from uuid import UUID
from datetime import date
from typing import Callable, Optional, List

from app.core.dependencies import get_invoice_service, get_today
from app.core.security import require_admin
from app.models.invoice import Invoice
from app.models.user import AdminUser
from app.schemas.invoice import (
    InvoiceActionResponse,
    InvoiceCreate,
    InvoiceResponse,
    InvoiceStats,
    InvoiceUpdate,
    MarkPaidRequest,
    PaymentCreate,
    PaymentRecordedResponse,
    PaymentResponse,
)
from app.services.invoice_service import InvoiceService
from app.services.status import calculated_invoice_status
from app.utils.date import days_until

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def build_invoice_response(invoice: Invoice, today: date) -> InvoiceResponse:
    """Build invoice response with derived status and due-date countdown"""
    response = InvoiceResponse.model_validate(invoice)
    response.calculated_status = calculated_invoice_status(invoice, today)
    response.days_until_due = days_until(invoice.due_date, today)
    return response


@router.get("", response_model=List[InvoiceResponse])
def list_invoices(
    status: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    customer: Optional[str] = Query(default=None, description="Customer email"),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    service: InvoiceService = Depends(get_invoice_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    """List invoices newest first; status=overdue filters on the derived state"""
    invoices = service.list_invoices(status, search, customer, date_from, date_to)
    return [build_invoice_response(invoice, today()) for invoice in invoices]


@router.get("/stats", response_model=InvoiceStats)
def get_invoice_stats(
    service: InvoiceService = Depends(get_invoice_service),
    current_user: AdminUser = Depends(require_admin)
):
    return service.stats()


@router.get("/number/{invoice_number}", response_model=InvoiceResponse)
def get_invoice_by_number(
    invoice_number: str,
    service: InvoiceService = Depends(get_invoice_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    return build_invoice_response(service.get_by_number(invoice_number), today())


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    return build_invoice_response(service.view(invoice_id), today())


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    service: InvoiceService = Depends(get_invoice_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    """Create a draft invoice, optionally converting a quotation"""
    invoice = service.create(invoice_data, created_by=current_user.id)
    return build_invoice_response(invoice, today())


@router.put("/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    invoice_id: UUID,
    invoice_data: InvoiceUpdate,
    service: InvoiceService = Depends(get_invoice_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    return build_invoice_response(service.update(invoice_id, invoice_data), today())


@router.delete("/{invoice_id}", response_model=InvoiceActionResponse)
def delete_invoice(
    invoice_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: AdminUser = Depends(require_admin)
):
    """Delete a draft invoice"""
    service.delete(invoice_id)
    return InvoiceActionResponse(message="Invoice deleted")


# Payments
@router.post(
    "/{invoice_id}/payments",
    response_model=PaymentRecordedResponse,
    status_code=status.HTTP_201_CREATED
)
def record_payment(
    invoice_id: UUID,
    payment_data: PaymentCreate,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: AdminUser = Depends(require_admin)
):
    invoice, payment = service.record_payment(invoice_id, payment_data, received_by=current_user.id)
    return PaymentRecordedResponse(
        message="Payment recorded",
        payment=PaymentResponse.model_validate(payment),
        balance_due=float(invoice.balance_due),
        payment_status=invoice.payment_status,
        status=invoice.status
    )


@router.get("/{invoice_id}/payments", response_model=List[PaymentResponse])
def list_payments(
    invoice_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: AdminUser = Depends(require_admin)
):
    return service.list_payments(invoice_id)


# Lifecycle actions
@router.post("/{invoice_id}/send", response_model=InvoiceResponse)
def send_invoice(
    invoice_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    """Mark a draft invoice as sent"""
    return build_invoice_response(service.mark_as_sent(invoice_id), today())


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceResponse)
def mark_invoice_paid(
    invoice_id: UUID,
    data: Optional[MarkPaidRequest] = None,
    service: InvoiceService = Depends(get_invoice_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    invoice = service.mark_as_paid(invoice_id, data, received_by=current_user.id)
    return build_invoice_response(invoice, today())


@router.post(
    "/{invoice_id}/duplicate",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED
)
def duplicate_invoice(
    invoice_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    return build_invoice_response(service.duplicate(invoice_id), today())
