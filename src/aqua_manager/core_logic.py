"""Business logic layer for Aqua Manager.

This module contains the ledger engine that owns the application aggregate.
It consumes the Data Access Layer (DAL) for all I/O while ensuring every
balance-affecting action is paired with an immutable transaction record:

* a delivery always appends exactly one ``BILL`` transaction;
* a payment always appends exactly one ``PAYMENT`` transaction;
* a customer's cached balance always equals billed minus paid.

Operations referencing unknown customers, bookings or reminders are no-ops
that log a warning and return ``None``. Validation failures raise before any
state is touched, so the aggregate is always consistent and serialisable.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from . import data_manager, log
from .constants import (
    BookingStatus,
    PaymentMethod,
    ReminderStatus,
    ReminderType,
    Timeframe,
    TransactionType,
)


EDITABLE_CUSTOMER_FIELDS = frozenset(
    {"name", "phone", "address", "price_per_jar", "active", "average_consumption_days"}
)
LEDGER_CUSTOMER_FIELDS = frozenset({"id", "balance"})
SETTINGS_FIELDS = frozenset({"merchant_upi_id", "merchant_name", "currency", "auto_sms_preference"})
CENT = Decimal("0.01")


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and the single aggregate used by the BLL."""

    settings: data_manager.ConfigSettings
    state: data_manager.AppState = field(default_factory=data_manager.AppState)


@dataclass(frozen=True)
class CustomerCommand:
    """User intent for registering a new customer."""

    name: str
    phone: str
    address: str
    price_per_jar: Decimal
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class DeliveryCommand:
    """User intent for logging jars delivered to a customer.

    ``date`` is the calendar label shown to the user; it defaults to today.
    """

    customer_id: str
    quantity: int
    date: Optional[str] = None
    note: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class PaymentCommand:
    """User intent for collecting money from a customer."""

    customer_id: str
    amount: Decimal
    method: PaymentMethod
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class BookingCommand:
    """User intent for placing an order to be fulfilled later."""

    customer_id: str
    quantity: int
    note: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ReminderCommand:
    customer_id: str
    scheduled_date: str
    reminder_type: ReminderType
    note: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class DeliveryReceipt:
    """The delivery and its paired bill produced by one state transition."""

    delivery: data_manager.Delivery
    bill: data_manager.Transaction


@dataclass(frozen=True)
class CustomerStatement:
    customer: data_manager.Customer
    deliveries: List[data_manager.Delivery]
    transactions: List[data_manager.Transaction]
    total_billed: Decimal
    total_paid: Decimal


@dataclass(frozen=True)
class DailyTotals:
    """Billing and collections booked against one calendar date."""

    date: str
    sales: Decimal
    collection: Decimal


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or, when ``None``, the current UTC datetime."""

    return candidate if candidate is not None else datetime.now(UTC)


def _epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def current_day() -> date:
    """Return today's UTC calendar date."""
    return _resolve_timestamp(None).date()


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and the persisted aggregate for the BLL.

    The helper resolves ``config.ini``, parses settings, and loads the JSON
    data file. A missing or unreadable data file is not an error: the DAL
    hands back the default seed in that case.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Context owning the aggregate for this session.

    Raises:
        FileNotFoundError: If the configuration file cannot be located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    state = data_manager.load_state(settings.data_file)
    log.info("Loaded runtime context for data file '%s'", settings.data_file)
    return RuntimeContext(settings=settings, state=state)


def persist_context(context: RuntimeContext) -> None:
    """Persist the in-memory aggregate to the configured data file."""
    data_manager.save_state(context.state, context.settings.data_file)
    log.info("Persisted state to '%s'", context.settings.data_file)


def replace_state(context: RuntimeContext, new_state: data_manager.AppState) -> None:
    """Overwrite the whole aggregate, as an import does. No merge happens."""
    state = context.state
    state.customers = list(new_state.customers)
    state.deliveries = list(new_state.deliveries)
    state.transactions = list(new_state.transactions)
    state.reminders = list(new_state.reminders)
    state.bookings = list(new_state.bookings)
    state.settings = new_state.settings
    log.info(
        "Replaced state with imported data (%d customers, %d transactions)",
        len(state.customers),
        len(state.transactions),
    )


def generate_record_id(*, prefix: str = "", when: Optional[datetime] = None, taken: Iterable[str] = ()) -> str:
    """Generate a sortable identifier from the generation time.

    Args:
        prefix (str): Designator prepended to the identifier, e.g. ``"bill_"``.
        when (datetime | None): Generation moment; defaults to now (UTC).
        taken (Iterable[str]): Identifiers already in use. When the timestamp
            alone collides, a ``-N`` suffix is appended.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}[-N]``.
    """
    when = when or _resolve_timestamp(None)
    base = f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}"
    existing = set(taken)
    candidate = base
    counter = 1
    while candidate in existing:
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


def require_positive_quantity(quantity: int) -> None:
    """Validate that a jar count is a strictly positive integer.

    Raises:
        ValueError: If ``quantity`` is zero, negative, or not an integer.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be a whole number greater than zero")


def require_positive_money(amount: Decimal) -> None:
    """Validate that a monetary value is strictly positive.

    Raises:
        ValueError: If ``amount`` is zero, negative, or not a finite number.
    """
    if not isinstance(amount, Decimal) or not amount.is_finite() or amount <= Decimal("0"):
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be greater than zero")


def round_money(amount: Decimal) -> Decimal:
    """Round a validated monetary value to whole cents (half up)."""
    if amount.as_tuple().exponent >= CENT.as_tuple().exponent:
        return amount
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary value is nonnegative.

    Raises:
        ValueError: If ``amount`` is less than zero or not a finite number.
    """
    if not isinstance(amount, Decimal) or not amount.is_finite() or amount < Decimal("0"):
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")


def require_iso_date(value: str) -> str:
    try:
        return date.fromisoformat(value).isoformat()
    except (TypeError, ValueError) as exc:
        log.error("Date validation failed: %s", value)
        raise ValueError(f"Invalid calendar date: {value!r}") from exc


def find_customer(context: RuntimeContext, customer_id: str) -> Optional[data_manager.Customer]:
    """Return the customer with ``customer_id`` or ``None`` (logged)."""
    for customer in context.state.customers:
        if customer.id == customer_id:
            return customer
    log.warning("Customer lookup failed for id '%s'", customer_id)
    return None


def find_booking(context: RuntimeContext, booking_id: str) -> Optional[data_manager.Booking]:
    for booking in context.state.bookings:
        if booking.id == booking_id:
            return booking
    log.warning("Booking lookup failed for id '%s'", booking_id)
    return None


def find_reminder(context: RuntimeContext, reminder_id: str) -> Optional[data_manager.ScheduledReminder]:
    for reminder in context.state.reminders:
        if reminder.id == reminder_id:
            return reminder
    log.warning("Reminder lookup failed for id '%s'", reminder_id)
    return None


def find_delivery(context: RuntimeContext, delivery_id: str) -> Optional[data_manager.Delivery]:
    for delivery in context.state.deliveries:
        if delivery.id == delivery_id:
            return delivery
    log.warning("Delivery lookup failed for id '%s'", delivery_id)
    return None


def find_transaction(context: RuntimeContext, transaction_id: str) -> Optional[data_manager.Transaction]:
    for transaction in context.state.transactions:
        if transaction.id == transaction_id:
            return transaction
    log.warning("Transaction lookup failed for id '%s'", transaction_id)
    return None


def _replace_record(records: List[Any], updated: Any) -> None:
    for index, record in enumerate(records):
        if record.id == updated.id:
            records[index] = updated
            return


def add_customer(context: RuntimeContext, command: CustomerCommand) -> data_manager.Customer:
    """Register a new active customer with a zero balance.

    Raises:
        ValueError: If the name is blank or the price is negative.
    """
    if not command.name or not command.name.strip():
        log.error("Customer validation failed: blank name")
        raise ValueError("Customer name must not be blank")
    require_nonnegative_money(command.price_per_jar)

    timestamp = _resolve_timestamp(command.timestamp)
    customer = data_manager.Customer(
        id=generate_record_id(when=timestamp, taken=(c.id for c in context.state.customers)),
        name=command.name.strip(),
        phone=command.phone,
        address=command.address,
        price_per_jar=round_money(command.price_per_jar),
        balance=Decimal("0"),
        active=True,
    )
    context.state.customers.insert(0, customer)
    log.info("Added customer '%s' (%s)", customer.id, customer.name)
    return customer


def edit_customer(context: RuntimeContext, customer_id: str, **changes: Any) -> Optional[data_manager.Customer]:
    """Update descriptive fields of a customer.

    Only fields in :data:`EDITABLE_CUSTOMER_FIELDS` may change. The balance is
    derived from the ledger and therefore cannot be edited directly; use
    payments and deliveries instead.

    Raises:
        BusinessRuleViolation: If ``id`` or ``balance`` is among ``changes``.
        KeyError: If ``changes`` names an unknown field.
        ValueError: If a new price is negative.
    """
    protected = LEDGER_CUSTOMER_FIELDS.intersection(changes)
    if protected:
        log.warning("Rejected edit of ledger-owned fields %s for '%s'", sorted(protected), customer_id)
        raise BusinessRuleViolation(f"Customer fields cannot be edited: {', '.join(sorted(protected))}")
    unknown = set(changes) - EDITABLE_CUSTOMER_FIELDS
    if unknown:
        raise KeyError(f"Unknown customer field: {', '.join(sorted(unknown))}")
    if "price_per_jar" in changes:
        require_nonnegative_money(changes["price_per_jar"])
        changes["price_per_jar"] = round_money(changes["price_per_jar"])

    customer = find_customer(context, customer_id)
    if customer is None:
        return None

    updated = replace(customer, **changes)
    _replace_record(context.state.customers, updated)
    log.info("Updated customer '%s' fields: %s", customer_id, ", ".join(sorted(changes)))
    return updated


def delete_customer(context: RuntimeContext, customer_id: str) -> Optional[data_manager.Customer]:
    """Remove a customer record. Their ledger entries are kept."""
    customer = find_customer(context, customer_id)
    if customer is None:
        return None
    context.state.customers = [c for c in context.state.customers if c.id != customer_id]
    log.info("Deleted customer '%s'", customer_id)
    return customer


def record_delivery(context: RuntimeContext, command: DeliveryCommand) -> Optional[DeliveryReceipt]:
    """Log a delivery and bill the customer for it.

    The cost is ``quantity * price_per_jar``. The delivery, its ``BILL``
    transaction and the raised balance are built first and applied together,
    so the aggregate either shows all three or none of them.

    Args:
        context (RuntimeContext): Context owning the aggregate.
        command (DeliveryCommand): Structured delivery intent.

    Returns:
        DeliveryReceipt | None: The new delivery and bill, or ``None`` when
            the customer is unknown.

    Raises:
        ValueError: If the quantity is not positive or the date is invalid.
    """
    require_positive_quantity(command.quantity)
    customer = find_customer(context, command.customer_id)
    if customer is None:
        return None

    timestamp = _resolve_timestamp(command.timestamp)
    day = require_iso_date(command.date) if command.date else timestamp.date().isoformat()
    cost = customer.price_per_jar * command.quantity
    note = command.note or None
    state = context.state

    delivery = data_manager.Delivery(
        id=generate_record_id(when=timestamp, taken=(d.id for d in state.deliveries)),
        customer_id=customer.id,
        date=day,
        quantity=command.quantity,
        timestamp=_epoch_millis(timestamp),
        note=note,
    )
    bill = build_bill_transaction(
        customer.id,
        quantity=command.quantity,
        cost=cost,
        day=day,
        note=note,
        timestamp=timestamp,
        transaction_id=generate_record_id(prefix="bill_", when=timestamp, taken=(t.id for t in state.transactions)),
    )

    state.deliveries.insert(0, delivery)
    state.transactions.insert(0, bill)
    _replace_record(state.customers, replace(customer, balance=customer.balance + cost))
    log.info(
        "Recorded delivery '%s' for customer '%s' (quantity=%s, cost=%s)",
        delivery.id,
        customer.id,
        command.quantity,
        cost,
    )
    return DeliveryReceipt(delivery=delivery, bill=bill)


def collect_payment(context: RuntimeContext, command: PaymentCommand) -> Optional[data_manager.Transaction]:
    """Append a ``PAYMENT`` dated today and lower the customer's balance.

    Overpayment is allowed and leaves a negative balance (credit).

    Raises:
        ValueError: If the amount is not positive.
        BusinessRuleViolation: If the payment method is unsupported.
    """
    require_positive_money(command.amount)
    amount = round_money(command.amount)
    require_positive_money(amount)
    if not isinstance(command.method, PaymentMethod):
        log.error("Unsupported payment method provided: %s", command.method)
        raise BusinessRuleViolation(f"Unsupported payment method: {command.method}")
    customer = find_customer(context, command.customer_id)
    if customer is None:
        return None

    timestamp = _resolve_timestamp(command.timestamp)
    state = context.state
    payment = build_payment_transaction(
        customer.id,
        amount=amount,
        method=command.method,
        timestamp=timestamp,
        transaction_id=generate_record_id(prefix="pay_", when=timestamp, taken=(t.id for t in state.transactions)),
    )
    state.transactions.insert(0, payment)
    _replace_record(state.customers, replace(customer, balance=customer.balance - amount))
    log.info(
        "Recorded PAYMENT '%s' from customer '%s' (amount=%s, method=%s)",
        payment.id,
        customer.id,
        amount,
        command.method.value,
    )
    return payment


def add_booking(context: RuntimeContext, command: BookingCommand) -> Optional[data_manager.Booking]:
    """Place a ``PENDING`` booking dated today."""
    require_positive_quantity(command.quantity)
    customer = find_customer(context, command.customer_id)
    if customer is None:
        return None

    timestamp = _resolve_timestamp(command.timestamp)
    booking = data_manager.Booking(
        id=generate_record_id(when=timestamp, taken=(b.id for b in context.state.bookings)),
        customer_id=customer.id,
        date=timestamp.date().isoformat(),
        quantity=command.quantity,
        status=BookingStatus.PENDING.value,
        note=command.note or None,
    )
    context.state.bookings.insert(0, booking)
    log.info("Added booking '%s' for customer '%s' (quantity=%s)", booking.id, customer.id, booking.quantity)
    return booking


def fulfill_booking(
    context: RuntimeContext,
    booking_id: str,
    *,
    timestamp: Optional[datetime] = None,
) -> Optional[DeliveryReceipt]:
    """Turn a pending booking into a delivery dated today.

    The delivery is dated on the day of fulfilment, not the day the booking
    was placed. Only ``PENDING`` bookings are fulfilled, so calling this again
    never bills twice. If the booking's customer no longer exists nothing is
    recorded and the booking stays pending.

    Returns:
        DeliveryReceipt | None: The delivery and bill created, or ``None`` for
            unknown, already settled, or orphaned bookings.
    """
    booking = find_booking(context, booking_id)
    if booking is None:
        return None
    if booking.status != BookingStatus.PENDING.value:
        log.warning("Booking '%s' is %s; nothing to fulfil", booking_id, booking.status)
        return None

    moment = _resolve_timestamp(timestamp)
    note = f"Booking #{booking.id}: {booking.note}" if booking.note else f"Booking #{booking.id}"
    receipt = record_delivery(
        context,
        DeliveryCommand(
            customer_id=booking.customer_id,
            quantity=booking.quantity,
            date=moment.date().isoformat(),
            note=note,
            timestamp=moment,
        ),
    )
    if receipt is None:
        return None

    _replace_record(context.state.bookings, replace(booking, status=BookingStatus.FULFILLED.value))
    log.info("Fulfilled booking '%s' with delivery '%s'", booking_id, receipt.delivery.id)
    return receipt


def cancel_booking(context: RuntimeContext, booking_id: str) -> Optional[data_manager.Booking]:
    """Mark a pending booking as cancelled; no ledger effect."""
    booking = find_booking(context, booking_id)
    if booking is None:
        return None
    if booking.status != BookingStatus.PENDING.value:
        log.warning("Booking '%s' is %s; cannot cancel", booking_id, booking.status)
        return None

    cancelled = replace(booking, status=BookingStatus.CANCELLED.value)
    _replace_record(context.state.bookings, cancelled)
    log.info("Cancelled booking '%s'", booking_id)
    return cancelled


def schedule_reminder(context: RuntimeContext, command: ReminderCommand) -> Optional[data_manager.ScheduledReminder]:
    """Schedule an advisory reminder for a customer."""
    scheduled_date = require_iso_date(command.scheduled_date)
    if not isinstance(command.reminder_type, ReminderType):
        raise BusinessRuleViolation(f"Unsupported reminder type: {command.reminder_type}")
    customer = find_customer(context, command.customer_id)
    if customer is None:
        return None

    timestamp = _resolve_timestamp(command.timestamp)
    reminder = data_manager.ScheduledReminder(
        id=generate_record_id(when=timestamp, taken=(r.id for r in context.state.reminders)),
        customer_id=customer.id,
        scheduled_date=scheduled_date,
        type=command.reminder_type.value,
        status=ReminderStatus.PENDING.value,
        note=command.note or None,
    )
    context.state.reminders.append(reminder)
    log.info("Scheduled %s reminder '%s' for '%s' on %s", reminder.type, reminder.id, customer.id, scheduled_date)
    return reminder


def mark_reminder_sent(context: RuntimeContext, reminder_id: str) -> Optional[data_manager.ScheduledReminder]:
    reminder = find_reminder(context, reminder_id)
    if reminder is None:
        return None
    sent = replace(reminder, status=ReminderStatus.SENT.value)
    _replace_record(context.state.reminders, sent)
    log.info("Marked reminder '%s' as sent", reminder_id)
    return sent


def delete_reminder(context: RuntimeContext, reminder_id: str) -> Optional[data_manager.ScheduledReminder]:
    reminder = find_reminder(context, reminder_id)
    if reminder is None:
        return None
    context.state.reminders = [r for r in context.state.reminders if r.id != reminder_id]
    log.info("Deleted reminder '%s'", reminder_id)
    return reminder


def update_settings(context: RuntimeContext, **changes: Any) -> data_manager.BusinessSettings:
    """Merge the supplied fields into the business settings.

    Raises:
        KeyError: If ``changes`` names an unknown settings field.
    """
    unknown = set(changes) - SETTINGS_FIELDS
    if unknown:
        raise KeyError(f"Unknown settings field: {', '.join(sorted(unknown))}")
    context.state.settings = replace(context.state.settings, **changes)
    log.info("Updated settings: %s", ", ".join(sorted(changes)))
    return context.state.settings


def build_bill_transaction(
    customer_id: str,
    *,
    quantity: int,
    cost: Decimal,
    day: str,
    note: Optional[str],
    timestamp: datetime,
    transaction_id: str,
) -> data_manager.Transaction:
    """Materialise the ``BILL`` paired with a delivery."""
    notes = f"Delivery: {quantity} jars ({note})" if note else f"Delivery: {quantity} jars"
    return data_manager.Transaction(
        id=transaction_id,
        customer_id=customer_id,
        date=day,
        amount=cost,
        type=TransactionType.BILL.value,
        timestamp=_epoch_millis(timestamp),
        notes=notes,
    )


def build_payment_transaction(
    customer_id: str,
    *,
    amount: Decimal,
    method: PaymentMethod,
    timestamp: datetime,
    transaction_id: str,
) -> data_manager.Transaction:
    return data_manager.Transaction(
        id=transaction_id,
        customer_id=customer_id,
        date=timestamp.date().isoformat(),
        amount=amount,
        type=TransactionType.PAYMENT.value,
        timestamp=_epoch_millis(timestamp),
        method=method.value,
    )


def calculate_balances(context: RuntimeContext) -> Dict[str, Decimal]:
    """Derive each customer's balance from the ledger.

    Returns:
        dict[str, Decimal]: ``customer_id -> sum(BILL) - sum(PAYMENT)`` for
            every current customer; customers without entries map to zero.
    """
    balances: Dict[str, Decimal] = {customer.id: Decimal("0") for customer in context.state.customers}
    for transaction in context.state.transactions:
        if transaction.customer_id not in balances:
            continue
        if transaction.type == TransactionType.BILL.value:
            balances[transaction.customer_id] += transaction.amount
        else:
            balances[transaction.customer_id] -= transaction.amount
    log.debug("Calculated ledger balances for %d customers", len(balances))
    return balances


def verify_ledger(context: RuntimeContext) -> Dict[str, Tuple[Decimal, Decimal]]:
    """Report customers whose cached balance disagrees with the ledger.

    Returns:
        dict[str, tuple[Decimal, Decimal]]: ``customer_id -> (cached,
            derived)`` for each mismatch. Empty when the ledger is consistent.
    """
    derived = calculate_balances(context)
    mismatches = {
        customer.id: (customer.balance, derived[customer.id])
        for customer in context.state.customers
        if customer.balance != derived[customer.id]
    }
    if mismatches:
        log.warning("Ledger mismatch for customers: %s", ", ".join(sorted(mismatches)))
    return mismatches


def reconcile_balances(context: RuntimeContext) -> List[str]:
    """Rewrite cached balances from the ledger; returns the ids corrected."""
    mismatches = verify_ledger(context)
    for customer in list(context.state.customers):
        if customer.id in mismatches:
            _replace_record(context.state.customers, replace(customer, balance=mismatches[customer.id][1]))
    if mismatches:
        log.info("Reconciled balances for %d customers", len(mismatches))
    return sorted(mismatches)


def list_transactions(context: RuntimeContext, *, customer_id: Optional[str] = None) -> List[data_manager.Transaction]:
    """Return ledger entries newest first by creation timestamp.

    The ``date`` label plays no part in ordering. Entries with equal
    timestamps keep their stored order, which is already newest first.
    """
    entries = [
        t for t in context.state.transactions
        if customer_id is None or t.customer_id == customer_id
    ]
    return sorted(entries, key=lambda t: t.timestamp, reverse=True)


def list_deliveries(
    context: RuntimeContext,
    *,
    customer_id: Optional[str] = None,
    on_date: Optional[str] = None,
) -> List[data_manager.Delivery]:
    entries = [
        d for d in context.state.deliveries
        if (customer_id is None or d.customer_id == customer_id)
        and (on_date is None or d.date == on_date)
    ]
    return sorted(entries, key=lambda d: d.timestamp, reverse=True)


def customer_history(context: RuntimeContext, customer_id: str) -> Optional[CustomerStatement]:
    """Collect a customer's deliveries, ledger entries and totals."""
    customer = find_customer(context, customer_id)
    if customer is None:
        return None
    transactions = list_transactions(context, customer_id=customer_id)
    total_billed = sum((t.amount for t in transactions if t.type == TransactionType.BILL.value), Decimal("0"))
    total_paid = sum((t.amount for t in transactions if t.type == TransactionType.PAYMENT.value), Decimal("0"))
    return CustomerStatement(
        customer=customer,
        deliveries=list_deliveries(context, customer_id=customer_id),
        transactions=transactions,
        total_billed=total_billed,
        total_paid=total_paid,
    )


def pending_bookings(context: RuntimeContext) -> List[data_manager.Booking]:
    return [b for b in context.state.bookings if b.status == BookingStatus.PENDING.value]


def pending_reminders(context: RuntimeContext) -> List[data_manager.ScheduledReminder]:
    """Return reminders still to be sent, earliest scheduled date first."""
    pending = [r for r in context.state.reminders if r.status == ReminderStatus.PENDING.value]
    return sorted(pending, key=lambda r: r.scheduled_date)


def customers_with_dues(context: RuntimeContext) -> List[data_manager.Customer]:
    """Customers owing money, largest balance first."""
    owing = [c for c in context.state.customers if c.balance > 0]
    return sorted(owing, key=lambda c: c.balance, reverse=True)


def calculate_financial_summary(context: RuntimeContext) -> Dict[str, Decimal]:
    """Produce lifetime billing, realised cash and outstanding totals.

    Returns:
        dict[str, Decimal]: ``total_sales`` (sum of bills),
            ``total_collection`` (sum of payments) and ``outstanding`` (sum of
            cached customer balances).
    """
    total_sales = Decimal("0")
    total_collection = Decimal("0")
    for transaction in context.state.transactions:
        if transaction.type == TransactionType.BILL.value:
            total_sales += transaction.amount
        else:
            total_collection += transaction.amount
    outstanding = sum((c.balance for c in context.state.customers), Decimal("0"))
    log.debug(
        "Calculated financial summary: sales=%s collection=%s outstanding=%s",
        total_sales,
        total_collection,
        outstanding,
    )
    return {
        "total_sales": total_sales,
        "total_collection": total_collection,
        "outstanding": outstanding,
    }


def calculate_dashboard_stats(context: RuntimeContext, *, today: Optional[date] = None) -> Dict[str, Any]:
    """Headline figures for the current day and month.

    Returns:
        dict[str, Any]: ``todays_deliveries`` (jars delivered today),
            ``total_outstanding``, ``monthly_revenue`` (payments dated in the
            current month) and ``pending_bookings`` (count).
    """
    today = today or current_day()
    day = today.isoformat()
    month = day[:7]
    state = context.state
    return {
        "todays_deliveries": sum(d.quantity for d in state.deliveries if d.date == day),
        "total_outstanding": sum((c.balance for c in state.customers), Decimal("0")),
        "monthly_revenue": sum(
            (t.amount for t in state.transactions
             if t.type == TransactionType.PAYMENT.value and t.date[:7] == month),
            Decimal("0"),
        ),
        "pending_bookings": len(pending_bookings(context)),
    }


def build_sales_series(
    context: RuntimeContext,
    timeframe: Timeframe = Timeframe.WEEKLY,
    *,
    today: Optional[date] = None,
) -> List[DailyTotals]:
    """Bucket bills and payments per day over the timeframe, oldest first.

    Entries dated outside the window are ignored.
    """
    today = today or current_day()
    days = [(today - timedelta(days=offset)).isoformat() for offset in range(timeframe.days - 1, -1, -1)]
    sales = {day: Decimal("0") for day in days}
    collection = {day: Decimal("0") for day in days}
    for transaction in context.state.transactions:
        if transaction.date not in sales:
            continue
        if transaction.type == TransactionType.BILL.value:
            sales[transaction.date] += transaction.amount
        else:
            collection[transaction.date] += transaction.amount
    return [DailyTotals(date=day, sales=sales[day], collection=collection[day]) for day in days]


def build_upi_link(settings: data_manager.BusinessSettings, amount: Optional[Decimal] = None) -> str:
    """Build a ``upi://pay`` deep link for the merchant, optionally with an amount."""
    parts = [f"pa={settings.merchant_upi_id}", f"pn={quote(settings.merchant_name, safe='')}"]
    if amount is not None:
        require_positive_money(amount)
        parts.append(f"am={round_money(amount).quantize(CENT)}")
    parts.append(f"cu={settings.currency}")
    return "upi://pay?" + "&".join(parts)
