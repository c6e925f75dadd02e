"""
Quotation API endpoints
Public cart submission and tracking, admin review and conversion
"""
from datetime import date
from typing import Callable, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import get_quotation_service, get_today
from app.core.security import require_admin
from app.models.quotation import Quotation
from app.models.user import AdminUser
from app.schemas.quotation import (
    ConvertToInvoiceRequest,
    ConvertToInvoiceResponse,
    NotificationFeed,
    QuotationActionResponse,
    QuotationNotesUpdate,
    QuotationResponse,
    QuotationStatusUpdate,
    QuotationSubmit,
    QuotationSubmitResponse,
)
from app.services.quotation_service import QuotationService
from app.services.status import QuotationStatus, quotation_is_expired
from app.utils.date import days_remaining

router = APIRouter(prefix="/quotations", tags=["Quotations"])


def build_quotation_response(quotation: Quotation, today: date, unread_count: int = 0) -> QuotationResponse:
    """Quotation with its derived expiry fields"""
    response = QuotationResponse.model_validate(quotation)
    response.calculated_status = (
        QuotationStatus.EXPIRED.value if quotation_is_expired(quotation, today) else quotation.status
    )
    response.days_remaining = days_remaining(quotation.valid_until, today)
    response.item_count = len(quotation.items)
    response.unread_count = unread_count
    return response


# -------------------------
# PUBLIC
# -------------------------
@router.post("/public", response_model=QuotationSubmitResponse, status_code=status.HTTP_201_CREATED)
def submit_quotation(
    payload: QuotationSubmit,
    service: QuotationService = Depends(get_quotation_service)
):
    """Submit a quotation request from the cart page"""
    quotation = service.submit(payload)
    return QuotationSubmitResponse(
        message="Quotation submitted successfully",
        quotation_id=quotation.quotation_id,
        valid_until=quotation.valid_until
    )


@router.get("/track/{reference}", response_model=QuotationResponse)
def track_quotation(
    reference: str,
    service: QuotationService = Depends(get_quotation_service),
    today: Callable[[], date] = Depends(get_today)
):
    """Look up a quotation by its KAY- reference"""
    return build_quotation_response(service.track(reference), today())


# -------------------------
# ADMIN
# -------------------------
@router.get("", response_model=List[QuotationResponse])
def list_quotations(
    status: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    service: QuotationService = Depends(get_quotation_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    """List quotations newest first with their unread notification counts"""
    rows = service.list_quotations(status, search, date_from, date_to)
    return [build_quotation_response(q, today(), unread) for q, unread in rows]


@router.get("/notifications", response_model=NotificationFeed)
def list_notifications(
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    service: QuotationService = Depends(get_quotation_service),
    current_user: AdminUser = Depends(require_admin)
):
    notifications, unread_count = service.list_notifications(limit)
    return NotificationFeed(notifications=notifications, unread_count=unread_count)


@router.post("/notifications/read-all", response_model=QuotationActionResponse)
def mark_all_notifications_read(
    service: QuotationService = Depends(get_quotation_service),
    current_user: AdminUser = Depends(require_admin)
):
    updated = service.mark_all_notifications_read()
    return QuotationActionResponse(message=f"{updated} notifications marked as read")


@router.post("/notifications/{notification_id}/read", response_model=QuotationActionResponse)
def mark_notification_read(
    notification_id: UUID,
    service: QuotationService = Depends(get_quotation_service),
    current_user: AdminUser = Depends(require_admin)
):
    service.mark_notification_read(notification_id)
    return QuotationActionResponse(message="Notification marked as read")


@router.get("/{quotation_id}", response_model=QuotationResponse)
def get_quotation(
    quotation_id: UUID,
    service: QuotationService = Depends(get_quotation_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    """Open a quotation; the first admin view moves it from pending to viewed"""
    return build_quotation_response(service.view(quotation_id), today())


@router.put("/{quotation_id}/status", response_model=QuotationResponse)
def update_quotation_status(
    quotation_id: UUID,
    data: QuotationStatusUpdate,
    service: QuotationService = Depends(get_quotation_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    return build_quotation_response(service.update_status(quotation_id, data.status), today())


@router.put("/{quotation_id}/notes", response_model=QuotationResponse)
def update_quotation_notes(
    quotation_id: UUID,
    data: QuotationNotesUpdate,
    service: QuotationService = Depends(get_quotation_service),
    today: Callable[[], date] = Depends(get_today),
    current_user: AdminUser = Depends(require_admin)
):
    return build_quotation_response(service.update_notes(quotation_id, data.admin_notes), today())


@router.post(
    "/{quotation_id}/convert-to-invoice",
    response_model=ConvertToInvoiceResponse,
    status_code=status.HTTP_201_CREATED
)
def convert_to_invoice(
    quotation_id: UUID,
    data: Optional[ConvertToInvoiceRequest] = None,
    service: QuotationService = Depends(get_quotation_service),
    current_user: AdminUser = Depends(require_admin)
):
    """Create a draft invoice from the quotation and mark it converted"""
    _, invoice = service.convert_to_invoice(quotation_id, data, created_by=current_user.id)
    return ConvertToInvoiceResponse(
        message="Quotation converted to invoice",
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number
    )


@router.delete("/{quotation_id}", response_model=QuotationActionResponse)
def delete_quotation(
    quotation_id: UUID,
    service: QuotationService = Depends(get_quotation_service),
    current_user: AdminUser = Depends(require_admin)
):
    service.delete(quotation_id)
    return QuotationActionResponse(message="Quotation deleted")
