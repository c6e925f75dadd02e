from datetime import date
from typing import Callable
from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.invoice_service import InvoiceService
from app.services.numbering import ReferenceGenerator, TimestampReferenceGenerator
from app.services.quotation_service import QuotationService

_reference_generator = TimestampReferenceGenerator()


# -------------------------
# SHARED COLLABORATORS
# -------------------------
def get_reference_generator() -> ReferenceGenerator:
    """Process-wide generator for KAY- references and INV- numbers"""
    return _reference_generator


def get_today() -> Callable[[], date]:
    """Clock used for due dates, expiry and overdue checks"""
    return date.today


# -------------------------
# SERVICE DEPENDENCIES
# -------------------------
def get_quotation_service(
    db: Session = Depends(get_db),
    references: ReferenceGenerator = Depends(get_reference_generator),
    today: Callable[[], date] = Depends(get_today)
) -> QuotationService:
    return QuotationService(db, references, today)


def get_invoice_service(
    db: Session = Depends(get_db),
    references: ReferenceGenerator = Depends(get_reference_generator),
    today: Callable[[], date] = Depends(get_today)
) -> InvoiceService:
    return InvoiceService(db, references, today)
