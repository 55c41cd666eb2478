from dental_clinic.models.base import Base
from dental_clinic.models.audit_log import AuditLog
from dental_clinic.models.appointment import Appointment, AppointmentStatus, AppointmentType
from dental_clinic.models.invoice import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)

__all__ = [
    "Base",
    "AuditLog",
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
]
