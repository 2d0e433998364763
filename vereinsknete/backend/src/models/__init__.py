"""ORM models exposed for easy imports."""

from .class_session import ClassSession, SessionStatus
from .client import Client
from .invoice import Invoice, InvoiceStatus, format_invoice_number
from .line_item import InvoiceLineItem
from .user_profile import UserProfile

__all__ = [
    "ClassSession",
    "Client",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "SessionStatus",
    "UserProfile",
    "format_invoice_number",
]
