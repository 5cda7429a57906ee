"""Enumerations shared across Aqua Manager modules.

Centralises domain constants so that the data access layer (DAL), business
logic layer (BLL), the AI collaborator boundary and the CLI rely on a single
source of truth for identifiers that end up in the persisted document.
"""

from __future__ import annotations

from enum import Enum


# Namespace of the aggregate inside the persisted JSON document.
STORAGE_KEY = "aqua_manager_data_v3"

DEFAULT_ASSISTANT_MODEL = "gemini-3-flash-preview"
DEFAULT_API_KEY_VARIABLE = "API_KEY"


class PaymentMethod(str, Enum):
    """Enumerate how a customer settled a payment."""

    CASH = "CASH"
    UPI = "UPI"
    PENDING = "PENDING"


class TransactionType(str, Enum):
    """Enumerate the two kinds of ledger entries."""

    BILL = "BILL"
    PAYMENT = "PAYMENT"


class BookingStatus(str, Enum):
    """Lifecycle of a customer booking."""

    PENDING = "PENDING"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"


class ReminderType(str, Enum):
    UPCOMING_DELIVERY = "UPCOMING_DELIVERY"
    PAYMENT_DUE = "PAYMENT_DUE"


class ReminderStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"


class Timeframe(str, Enum):
    """Reporting windows and the number of days each one looks back."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    ALL = "ALL"

    @property
    def days(self) -> int:
        return {"DAILY": 1, "WEEKLY": 7, "MONTHLY": 30, "ALL": 365}[self.value]


class AgentMode(str, Enum):
    """Persona used by the conversational assistant."""

    MERCHANT = "MERCHANT"
    SUPPORT = "SUPPORT"


class SheetName(str, Enum):
    """Enumerate the worksheet names written by the spreadsheet export."""

    CUSTOMERS = "Customers"
    TRANSACTIONS = "Transactions"


__all__ = [
    "STORAGE_KEY",
    "DEFAULT_ASSISTANT_MODEL",
    "DEFAULT_API_KEY_VARIABLE",
    "PaymentMethod",
    "TransactionType",
    "BookingStatus",
    "ReminderType",
    "ReminderStatus",
    "Timeframe",
    "AgentMode",
    "SheetName",
]
