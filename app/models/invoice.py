"""
Invoice, Invoice Item and Invoice Payment models
"""
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, DECIMAL, Text, Boolean, Integer, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.base import IdMixin, TimestampMixin


class Invoice(Base, IdMixin, TimestampMixin):
    """
    Invoice model - billable document tracking amount owed and payments
    """

    __tablename__ = "invoices"

    invoice_number = Column(String(30), nullable=False, unique=True, index=True)

    # Originating quotation (if converted)
    quotation_id = Column(
        Uuid,
        ForeignKey("quotations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    quotation_reference = Column(String(100), nullable=True)

    # Status (draft, pending, paid, cancelled); overdue is derived
    status = Column(String(20), default="draft", nullable=False, index=True)
    # unpaid, partial, paid
    payment_status = Column(String(20), default="unpaid", nullable=False)

    # Customer snapshot
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(50), nullable=True)
    customer_company = Column(String(255), nullable=True)
    customer_address = Column(Text, nullable=True)
    customer_tax_id = Column(String(50), nullable=True)

    # Dates
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    payment_terms = Column(Integer, default=30, nullable=False)

    # Amounts
    subtotal = Column(DECIMAL(15, 2), default=0, nullable=False)
    tax_rate = Column(DECIMAL(5, 2), default=0, nullable=False)
    tax_amount = Column(DECIMAL(15, 2), default=0, nullable=False)
    discount_type = Column(String(20), nullable=True)  # percentage, fixed
    discount_value = Column(DECIMAL(15, 2), default=0, nullable=False)
    discount_amount = Column(DECIMAL(15, 2), default=0, nullable=False)
    shipping_amount = Column(DECIMAL(15, 2), default=0, nullable=False)
    total = Column(DECIMAL(15, 2), default=0, nullable=False)
    amount_paid = Column(DECIMAL(15, 2), default=0, nullable=False)
    balance_due = Column(DECIMAL(15, 2), default=0, nullable=False)

    # Set when the caller supplied tax_amount/total instead of the computed ones
    totals_overridden = Column(Boolean, default=False, nullable=False)

    # Notes
    notes = Column(Text, nullable=True)
    terms_conditions = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    # Lifecycle stamps
    sent_at = Column(DateTime, nullable=True)
    viewed_at = Column(DateTime, nullable=True)
    paid_date = Column(Date, nullable=True)

    # Audit fields
    created_by = Column(Uuid, nullable=True)

    # Relationships
    quotation = relationship("Quotation", foreign_keys=[quotation_id])
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.sort_order",
    )
    payments = relationship(
        "InvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePayment.payment_date.desc()",
    )

    def __repr__(self):
        return f"<Invoice {self.invoice_number} - {self.total}>"


class InvoiceItem(Base, IdMixin):
    """
    Invoice Item model - individual line items within an invoice
    """

    __tablename__ = "invoice_items"

    invoice_id = Column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = Column(String(64), nullable=True)
    quotation_item_id = Column(Uuid, nullable=True)

    # product, service
    item_type = Column(String(20), default="product", nullable=False)
    item_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(DECIMAL(10, 2), default=1, nullable=False)
    unit = Column(String(50), default="unit", nullable=False)
    unit_price = Column(DECIMAL(15, 2), default=0, nullable=False)

    discount_percent = Column(DECIMAL(5, 2), default=0, nullable=False)
    discount_amount = Column(DECIMAL(15, 2), default=0, nullable=False)

    # Tax calculation
    tax_rate = Column(DECIMAL(5, 2), default=0, nullable=False)
    tax_amount = Column(DECIMAL(15, 2), default=0, nullable=False)
    total = Column(DECIMAL(15, 2), default=0, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    invoice = relationship("Invoice", back_populates="items")

    def __repr__(self):
        return f"<InvoiceItem {self.invoice_id} - {self.total}>"


class InvoicePayment(Base, IdMixin):
    """
    Invoice Payment model - one payment received against an invoice
    """

    __tablename__ = "invoice_payments"

    invoice_id = Column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payment_date = Column(Date, nullable=False)
    amount = Column(DECIMAL(15, 2), nullable=False)

    # bank_transfer, cash, card, mobile_money, cheque, other
    payment_method = Column(String(50), nullable=False, default="other")
    reference_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    received_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    invoice = relationship("Invoice", back_populates="payments")

    def __repr__(self):
        return f"<InvoicePayment {self.invoice_id} - {self.amount}>"
