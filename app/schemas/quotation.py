"""
Quotation request and response schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# SUBMISSION (public cart page)
# ============================================================================

class QuotationCustomer(BaseModel):
    """Customer details as typed on the cart page"""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    project_name: Optional[str] = Field(default=None, alias="projectName")
    delivery_address: Optional[str] = Field(default=None, alias="deliveryAddress")
    notes: Optional[str] = None


class QuotationItemCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, description="Catalog product id, empty for services")
    name: str
    description: Optional[str] = None
    quantity: Decimal
    unit: str = "unit"
    price: Decimal
    total: Optional[Decimal] = None
    is_service: bool = Field(default=False, alias="isService")
    category: Optional[str] = None


class QuotationSubmit(BaseModel):
    customer: QuotationCustomer
    items: List[QuotationItemCreate] = []
    subtotal: Decimal = Decimal("0")
    vat: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "customer": {"name": "Jane Doe", "email": "jane@example.com"},
                "items": [{"id": "12", "name": "Resin table", "quantity": 2, "price": 500.00}],
                "subtotal": 1000.00,
                "vat": 160.00,
                "total": 1160.00
            }
        }


class QuotationSubmitResponse(BaseModel):
    success: bool = True
    message: str
    quotation_id: str
    valid_until: date


# ============================================================================
# ADMIN UPDATES
# ============================================================================

class QuotationStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str


class QuotationNotesUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    admin_notes: Optional[str] = None


class ConvertToInvoiceRequest(BaseModel):
    """Optional invoice fields applied while converting"""
    model_config = ConfigDict(extra="forbid")

    issue_date: Optional[date] = None
    payment_terms: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    terms_conditions: Optional[str] = None


# ============================================================================
# RESPONSES
# ============================================================================

class QuotationItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: Optional[str] = None
    product_name: str
    description: Optional[str] = None
    quantity: float
    unit: str
    unit_price: float
    total: float
    is_service: bool
    category: Optional[str] = None


class QuotationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    quotation_id: str
    status: str
    calculated_status: str = ""
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    customer_company: Optional[str] = None
    customer_project_name: Optional[str] = None
    customer_delivery_address: Optional[str] = None
    customer_notes: Optional[str] = None
    subtotal: float
    vat: float
    total: float
    valid_until: date
    days_remaining: int = 0
    admin_notes: Optional[str] = None
    viewed_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    converted_to_invoice_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    items: List[QuotationItemResponse] = []
    item_count: int = 0
    unread_count: int = 0


class QuotationActionResponse(BaseModel):
    success: bool = True
    message: str


class ConvertToInvoiceResponse(BaseModel):
    success: bool = True
    message: str
    invoice_id: UUID
    invoice_number: str


# ============================================================================
# NOTIFICATIONS
# ============================================================================

class NotificationResponse(BaseModel):
    id: UUID
    quotation_id: UUID
    quotation_reference: str
    customer_name: str
    total: float
    notification_type: str
    is_read: bool
    created_at: datetime


class NotificationFeed(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
