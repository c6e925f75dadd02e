from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Literal
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator

DiscountType = Literal["none", "percentage", "fixed"]


# Line Item Schemas
class InvoiceItemCreate(BaseModel):
    product_id: Optional[str] = None
    quotation_item_id: Optional[UUID] = None
    item_type: Literal["product", "service"] = "product"
    item_name: str
    description: Optional[str] = None
    quantity: Decimal = Decimal("1")
    unit: str = "unit"
    unit_price: Decimal
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    tax_rate: Optional[Decimal] = None  # Falls back to the invoice rate

    @field_validator('item_name')
    @classmethod
    def validate_item_name(cls, v):
        if not v.strip():
            raise ValueError('Item name is required')
        return v


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: Optional[str] = None
    quotation_item_id: Optional[UUID] = None
    item_type: str
    item_name: str
    description: Optional[str] = None
    quantity: float
    unit: str
    unit_price: float
    discount_percent: float
    discount_amount: float
    tax_rate: float
    tax_amount: float
    total: float
    sort_order: int


# Payment Schemas
class PaymentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: Decimal
    payment_method: str = "other"
    reference_number: Optional[str] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator('payment_method')
    @classmethod
    def validate_payment_method(cls, v):
        return v.lower()


class MarkPaidRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payment_method: str = "other"
    reference_number: Optional[str] = None
    payment_date: Optional[date] = None


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_id: UUID
    payment_date: date
    amount: float
    payment_method: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    received_by: Optional[UUID] = None
    created_at: datetime


class PaymentRecordedResponse(BaseModel):
    success: bool = True
    message: str
    payment: PaymentResponse
    balance_due: float
    payment_status: str
    status: str


# Invoice Schemas
class InvoiceCreate(BaseModel):
    # From quotation conversion
    quotation_id: Optional[UUID] = None
    quotation_reference: Optional[str] = None

    # Customer info
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_company: Optional[str] = None
    customer_address: Optional[str] = None
    customer_tax_id: Optional[str] = None

    # Invoice details
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    payment_terms: Optional[int] = Field(default=None, ge=0)

    # Financial (tax_amount / total override the computed values)
    subtotal: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    tax_amount: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Decimal = Decimal("0")
    shipping_amount: Decimal = Decimal("0")
    total: Optional[Decimal] = None

    items: List[InvoiceItemCreate] = []

    notes: Optional[str] = None
    terms_conditions: Optional[str] = None

    @field_validator('due_date')
    @classmethod
    def validate_due_date(cls, v, info):
        issue_date = info.data.get('issue_date')
        if v and issue_date and v < issue_date:
            raise ValueError('Due date must be on or after issue date')
        return v


class InvoiceUpdate(BaseModel):
    """Exactly the mutable invoice fields; anything else is rejected"""
    model_config = ConfigDict(extra="forbid")

    status: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_company: Optional[str] = None
    customer_address: Optional[str] = None
    customer_tax_id: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    subtotal: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    tax_amount: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    shipping_amount: Optional[Decimal] = None
    total: Optional[Decimal] = None
    amount_paid: Optional[Decimal] = None
    notes: Optional[str] = None
    terms_conditions: Optional[str] = None
    admin_notes: Optional[str] = None
    items: Optional[List[InvoiceItemCreate]] = None


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    quotation_id: Optional[UUID] = None
    quotation_reference: Optional[str] = None
    status: str
    calculated_status: str = ""
    payment_status: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    customer_company: Optional[str] = None
    customer_address: Optional[str] = None
    customer_tax_id: Optional[str] = None
    issue_date: date
    due_date: date
    days_until_due: int = 0
    payment_terms: int
    subtotal: float
    tax_rate: float
    tax_amount: float
    discount_type: Optional[str] = None
    discount_value: float
    discount_amount: float
    shipping_amount: float
    total: float
    amount_paid: float
    balance_due: float
    totals_overridden: bool
    notes: Optional[str] = None
    terms_conditions: Optional[str] = None
    admin_notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    viewed_at: Optional[datetime] = None
    paid_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime
    items: List[InvoiceItemResponse] = []
    payments: List[PaymentResponse] = []


class InvoiceActionResponse(BaseModel):
    success: bool = True
    message: str


# Statistics
class MonthlyInvoiceTotal(BaseModel):
    month: str
    count: int
    total: float


class TopCustomer(BaseModel):
    customer_name: str
    customer_email: str
    invoice_count: int
    total_spent: float


class InvoiceStats(BaseModel):
    total: int
    draft: int
    pending: int
    paid: int
    cancelled: int
    overdue: int
    total_amount: float
    paid_amount: float
    outstanding_amount: float
    total_balance_due: float
    average_invoice_value: float
    first_invoice_date: Optional[date] = None
    latest_invoice_date: Optional[date] = None
    monthly: List[MonthlyInvoiceTotal]
    top_customers: List[TopCustomer]
