"""
Quotation, Quotation Item and Quotation Notification models
"""
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, DECIMAL, Text, Boolean, Integer, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.base import IdMixin, TimestampMixin


class Quotation(Base, IdMixin, TimestampMixin):
    """
    Quotation model - price estimate submitted from the public cart page
    Customer fields are a snapshot taken at submission time
    """

    __tablename__ = "quotations"

    quotation_id = Column(String(20), nullable=False, unique=True, index=True)

    # Status (pending, viewed, processing, converted, expired, cancelled)
    status = Column(String(20), default="pending", nullable=False, index=True)

    # Customer snapshot
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    customer_company = Column(String(255), nullable=True)
    customer_project_name = Column(String(255), nullable=True)
    customer_delivery_address = Column(Text, nullable=True)
    customer_notes = Column(Text, nullable=True)

    # Amounts
    subtotal = Column(DECIMAL(15, 2), default=0, nullable=False)
    vat = Column(DECIMAL(15, 2), default=0, nullable=False)
    total = Column(DECIMAL(15, 2), default=0, nullable=False)

    valid_until = Column(Date, nullable=False)
    admin_notes = Column(Text, nullable=True)

    # Lifecycle stamps
    viewed_at = Column(DateTime, nullable=True)
    converted_at = Column(DateTime, nullable=True)
    converted_to_invoice_id = Column(Uuid, nullable=True)

    # Relationships
    items = relationship(
        "QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.sort_order",
    )
    notifications = relationship(
        "QuotationNotification",
        back_populates="quotation",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Quotation {self.quotation_id} - {self.status}>"


class QuotationItem(Base, IdMixin):
    """
    Quotation Item model - one priced row, product or service
    """

    __tablename__ = "quotation_items"

    quotation_id = Column(
        Uuid,
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Catalog reference (null for free-form services)
    product_id = Column(String(64), nullable=True)

    product_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(DECIMAL(10, 2), default=1, nullable=False)
    unit = Column(String(50), default="unit", nullable=False)
    unit_price = Column(DECIMAL(15, 2), default=0, nullable=False)
    total = Column(DECIMAL(15, 2), default=0, nullable=False)
    is_service = Column(Boolean, default=False, nullable=False)
    category = Column(String(100), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)

    quotation = relationship("Quotation", back_populates="items")

    def __repr__(self):
        return f"<QuotationItem {self.product_name} x {self.quantity}>"


class QuotationNotification(Base, IdMixin):
    """
    Append-only lifecycle event shown in the admin notification feed
    """

    __tablename__ = "quotation_notifications"

    quotation_id = Column(
        Uuid,
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # new, viewed, converted, status_changed
    notification_type = Column(String(30), nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    quotation = relationship("Quotation", back_populates="notifications")

    def __repr__(self):
        return f"<QuotationNotification {self.notification_type} -> {self.quotation_id}>"
