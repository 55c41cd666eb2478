from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AgingBucketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    range: str
    amount: Decimal
    count: int


class OutstandingReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    as_of: date
    total_outstanding: Decimal
    buckets: list[AgingBucketOut]


class PatientBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    patient_id: str
    balance: Decimal
    invoice_count: int
    last_visit: Optional[date] = None


class MethodTotalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    method: str
    amount: Decimal
    count: int


class RevenueReportOut(BaseModel):
    range: dict[str, date]
    total_revenue: Decimal
    payment_count: int
    average_transaction: Decimal
    payment_breakdown: list[MethodTotalOut]
