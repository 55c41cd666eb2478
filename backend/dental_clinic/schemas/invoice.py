from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dental_clinic.models.invoice import InvoiceStatus, PaymentMethod


class InvoiceItemCreate(BaseModel):
    description: str = Field(default="", max_length=200)
    tooth_number: Optional[str] = Field(default=None, max_length=16)
    quantity: int = Field(default=1, ge=1, le=9999)
    unit_price: Decimal = Field(ge=0, le=999999, decimal_places=2)


class InvoiceItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    tooth_number: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class InvoiceCreate(BaseModel):
    patient_id: str = Field(min_length=1, max_length=64)
    items: list[InvoiceItemCreate] = Field(min_length=1, max_length=50)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0, le=999999, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0, le=999999, decimal_places=2)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    payment_terms: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=500)


class DiscountUpdate(BaseModel):
    discount_amount: Decimal = Field(ge=0, le=999999, decimal_places=2)


class InvoiceVoid(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class PaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0, le=999999, decimal_places=2)
    payment_method: PaymentMethod
    payment_date: Optional[date] = None
    reference_number: Optional[str] = Field(default=None, max_length=120)
    notes: Optional[str] = Field(default=None, max_length=200)


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    patient_id: str
    payment_date: date
    amount: Decimal
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    recorded_at: datetime
    recorded_by: Optional[str] = None


class InvoiceSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    patient_id: str
    invoice_date: date
    due_date: Optional[date] = None
    status: InvoiceStatus
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    is_void: bool
    created_at: datetime


class InvoiceOut(InvoiceSummaryOut):
    model_config = ConfigDict(from_attributes=True)

    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    voided_at: Optional[datetime] = None
    voided_reason: Optional[str] = None
    items: list[InvoiceItemOut]
    payments: list[PaymentOut]


class StatementLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_date: Optional[date] = None
    kind: str
    description: str
    amount: Decimal
    running_balance: Decimal


class StatementOut(BaseModel):
    invoice_id: int
    invoice_number: str
    balance: Decimal
    lines: list[StatementLineOut]


class OverdueRefreshOut(BaseModel):
    as_of: date
    checked: int
    updated: int
