"""
SQLAlchemy models for the application
"""
from app.models.base import Base, IdMixin, TimestampMixin
from app.models.user import AdminUser
from app.models.quotation import Quotation, QuotationItem, QuotationNotification
from app.models.invoice import Invoice, InvoiceItem, InvoicePayment

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "AdminUser",
    "Quotation",
    "QuotationItem",
    "QuotationNotification",
    "Invoice",
    "InvoiceItem",
    "InvoicePayment",
]
