"""Data access layer for Aqua Manager.

This module provides low-level helpers that read from and write to the JSON
data file holding the whole application state. Business logic belongs
elsewhere.

The public API is designed around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Record types: frozen dataclasses for every entity plus their
   serialisation to and from the camelCase JSON document.
3. Store lifecycle: loading the namespaced document (falling back to the
   default seed and backfilling missing fields) and saving it wholesale.
4. Backups: exporting/importing the aggregate and writing a spreadsheet copy
   of customers and the ledger.
"""


from __future__ import annotations

import configparser
import json
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import openpyxl
from openpyxl.styles import Font

from . import log
from .constants import (
    DEFAULT_API_KEY_VARIABLE,
    DEFAULT_ASSISTANT_MODEL,
    STORAGE_KEY,
    SheetName,
    TransactionType,
)


CONFIG_FILE_NAME = "config.ini"
DEFAULT_TIMEOUT_SECONDS = 30

CUSTOMER_COLUMNS = ["CustomerID", "Name", "Phone", "Address", "PricePerJar", "Balance", "Active"]
TRANSACTION_COLUMNS = ["TransactionID", "CustomerID", "Date", "Type", "Amount", "Method", "Notes", "Timestamp"]


class BackupFormatError(ValueError):
    """Raised when an imported backup is not a well-formed state document."""


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    business_name: str
    assistant_model: str = DEFAULT_ASSISTANT_MODEL
    api_key_variable: str = DEFAULT_API_KEY_VARIABLE
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class Customer:
    """A delivery customer and the cached balance they owe."""

    id: str
    name: str
    phone: str
    address: str
    price_per_jar: Decimal
    balance: Decimal = Decimal("0")
    active: bool = True
    average_consumption_days: Optional[int] = None


@dataclass(frozen=True)
class Delivery:
    """Jars delivered to a customer on a calendar date."""

    id: str
    customer_id: str
    date: str
    quantity: int
    timestamp: int
    note: Optional[str] = None


@dataclass(frozen=True)
class Transaction:
    """Immutable ledger entry; BILL raises a balance, PAYMENT lowers it."""

    id: str
    customer_id: str
    date: str
    amount: Decimal
    type: str
    timestamp: int
    method: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Booking:
    id: str
    customer_id: str
    date: str
    quantity: int
    status: str
    note: Optional[str] = None


@dataclass(frozen=True)
class ScheduledReminder:
    id: str
    customer_id: str
    scheduled_date: str
    type: str
    status: str
    note: Optional[str] = None


@dataclass(frozen=True)
class BusinessSettings:
    merchant_upi_id: str = "merchant@upi"
    merchant_name: str = "Aqua Manager Services"
    currency: str = "INR"
    auto_sms_preference: bool = False


@dataclass
class AppState:
    """The aggregate persisted as a single JSON document.

    Customers, deliveries, transactions and bookings are kept newest first;
    reminders are kept in the order they were scheduled.
    """

    customers: List[Customer] = field(default_factory=list)
    deliveries: List[Delivery] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    reminders: List[ScheduledReminder] = field(default_factory=list)
    bookings: List[Booking] = field(default_factory=list)
    settings: BusinessSettings = field(default_factory=BusinessSettings)


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If no parent directory contains ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Parser containing the raw configuration.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System]`` must provide ``DataFile`` and ``BusinessName``. The
    ``[Assistant]`` section is optional; ``Model``, ``ApiKeyVariable`` and
    ``TimeoutSeconds`` fall back to the package defaults. Relative data file
    paths are anchored to ``base_path`` (or the working directory).

    Raises:
        KeyError: If a required ``[System]`` entry is missing.
        ValueError: If ``TimeoutSeconds`` is not an integer.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        business_name = parser.get("System", "BusinessName")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    model = parser.get("Assistant", "Model", fallback=DEFAULT_ASSISTANT_MODEL)
    api_key_variable = parser.get("Assistant", "ApiKeyVariable", fallback=DEFAULT_API_KEY_VARIABLE)
    timeout_seconds = parser.getint("Assistant", "TimeoutSeconds", fallback=DEFAULT_TIMEOUT_SECONDS)

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        business_name=business_name,
        assistant_model=model,
        api_key_variable=api_key_variable,
        timeout_seconds=timeout_seconds,
    )


def default_settings() -> BusinessSettings:
    return BusinessSettings()


def default_state(*, when: Optional[datetime] = None) -> AppState:
    """Build the seed aggregate used when no prior state can be loaded.

    The seed customers carry opening balances; each non-zero balance is backed
    by an opening ``BILL`` transaction so that cached balances agree with the
    ledger from the first load.

    Args:
        when (datetime | None): Moment used to date the opening transactions.
            Defaults to the current UTC time.

    Returns:
        AppState: Fresh aggregate with three customers and default settings.
    """

    when = when or datetime.now(UTC)
    timestamp = int(when.timestamp() * 1000)
    customers = [
        Customer("c1", "Green Valley Gym", "9876543210", "12 Main St", Decimal("40"), Decimal("120")),
        Customer("c2", "Sunrise Apartments", "9876543211", "45 Lake View", Decimal("35"), Decimal("0")),
        Customer("c3", "Tech Solutions Office", "9876543212", "Indiranagar, Block 4", Decimal("50"), Decimal("500")),
    ]
    transactions = [
        Transaction(
            id=f"open_{customer.id}",
            customer_id=customer.id,
            date=when.date().isoformat(),
            amount=customer.balance,
            type=TransactionType.BILL.value,
            timestamp=timestamp,
            notes="Opening balance",
        )
        for customer in customers
        if customer.balance != 0
    ]
    return AppState(customers=customers, transactions=transactions, settings=default_settings())


def load_state(data_file: Path) -> AppState:
    """Load the aggregate stored under :data:`STORAGE_KEY` in ``data_file``.

    Any problem reading the document (missing file, unreadable file, invalid
    JSON, absent storage key, records that cannot be deserialised) is logged
    and treated as "no prior state": the default seed is returned instead.
    Documents written by older versions are backfilled via
    :func:`deserialize_state`.

    Args:
        data_file (Path): Location of the JSON data file.

    Returns:
        AppState: The persisted aggregate or the default seed.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        log.info("No data file at '%s'; starting from default state", data_file)
        return default_state()

    try:
        document = json.loads(data_file.read_text(encoding="utf-8"), parse_float=Decimal)
    except (OSError, ValueError) as exc:
        log.error("Error loading state from '%s': %s", data_file, exc)
        return default_state()

    if not isinstance(document, dict) or not isinstance(document.get(STORAGE_KEY), dict):
        log.warning("Data file '%s' has no '%s' entry; using default state", data_file, STORAGE_KEY)
        return default_state()

    try:
        state = deserialize_state(document[STORAGE_KEY])
    except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
        log.error("Error decoding state from '%s': %s", data_file, exc)
        return default_state()

    log.info(
        "Loaded state from '%s' (%d customers, %d transactions)",
        data_file,
        len(state.customers),
        len(state.transactions),
    )
    return state


def save_state(state: AppState, data_file: Path) -> None:
    """Serialise the whole aggregate to ``data_file`` under the storage key.

    Parent directories are created on demand. The document is written to a
    sibling temporary file first and then moved into place so an interrupted
    write never leaves a truncated data file behind.

    Raises:
        OSError: If the file cannot be written.
    """

    dest = Path(data_file).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps({STORAGE_KEY: serialize_state(state)}, indent=2, ensure_ascii=False)
    staging = dest.with_name(dest.name + ".tmp")
    staging.write_text(payload, encoding="utf-8")
    staging.replace(dest)


def default_backup_name(day: date) -> str:
    return f"aqua_backup_{day.isoformat()}.json"


def export_backup(state: AppState, destination: Path) -> Path:
    """Write the aggregate (without the storage namespace) to ``destination``."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(json.dumps(serialize_state(state), indent=2, ensure_ascii=False), encoding="utf-8")
    log.info("Exported backup to '%s'", dest)
    return dest


def import_backup(source: Path) -> AppState:
    """Read a backup written by :func:`export_backup`.

    Only well-formedness is checked: the file must be valid JSON holding an
    object whose records can be decoded. Missing collections are backfilled
    exactly as they are on load.

    Raises:
        FileNotFoundError: If ``source`` does not exist.
        BackupFormatError: If the file is not a usable state document.
    """

    source = Path(source).expanduser().resolve()
    if not source.exists():
        raise FileNotFoundError(f"Backup not found: {source}")

    try:
        document = json.loads(source.read_text(encoding="utf-8"), parse_float=Decimal)
    except ValueError as exc:
        raise BackupFormatError(f"Invalid backup file: {source}") from exc

    if not isinstance(document, dict):
        raise BackupFormatError(f"Invalid backup file: {source}")

    try:
        return deserialize_state(document)
    except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
        raise BackupFormatError(f"Invalid backup file: {source} ({exc})") from exc


def export_workbook(state: AppState, destination: Path) -> Path:
    """Write customers and the ledger to an Excel workbook.

    The workbook holds a ``Customers`` sheet and a ``Transactions`` sheet,
    each with a bold header row. Money columns are written as
    :class:`~decimal.Decimal` so Excel keeps their precision.

    Args:
        state (AppState): Aggregate to export.
        destination (Path): Target ``.xlsx`` path; parents are created.

    Returns:
        Path: The resolved destination.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)
    sheets = {
        SheetName.CUSTOMERS.value: (CUSTOMER_COLUMNS, [serialize_customer_row(c) for c in state.customers]),
        SheetName.TRANSACTIONS.value: (TRANSACTION_COLUMNS, [serialize_transaction_row(t) for t in state.transactions]),
    }
    for sheet_name, (columns, rows) in sheets.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for column_index, column_name in enumerate(columns, start=1):
            cell = worksheet.cell(row=1, column=column_index)
            cell.value = column_name
            cell.font = bold_font
        for row in rows:
            worksheet.append(row)

    workbook.save(dest)
    log.info("Exported workbook to '%s'", dest)
    return dest


def serialize_customer_row(record: Customer) -> list[object]:
    return [
        record.id,
        record.name,
        record.phone,
        record.address,
        record.price_per_jar,
        record.balance,
        record.active,
    ]


def serialize_transaction_row(record: Transaction) -> list[object]:
    return [
        record.id,
        record.customer_id,
        record.date,
        record.type,
        record.amount,
        record.method,
        record.notes,
        record.timestamp,
    ]


def serialize_state(state: AppState) -> Dict[str, Any]:
    """Convert the aggregate into the JSON document shape."""

    return {
        "customers": [serialize_customer(c) for c in state.customers],
        "deliveries": [serialize_delivery(d) for d in state.deliveries],
        "transactions": [serialize_transaction(t) for t in state.transactions],
        "reminders": [serialize_reminder(r) for r in state.reminders],
        "bookings": [serialize_booking(b) for b in state.bookings],
        "settings": serialize_settings(state.settings),
    }


def deserialize_state(raw: Mapping[str, Any]) -> AppState:
    """Convert a JSON aggregate into :class:`AppState`, backfilling gaps.

    Documents written before settings, reminders or bookings existed are
    accepted; absent collections become empty lists and absent settings
    become the defaults. A settings object missing ``autoSmsPreference`` is
    treated as ``False``.
    """

    settings_raw = raw.get("settings")
    settings = deserialize_settings(settings_raw) if settings_raw else default_settings()
    return AppState(
        customers=[deserialize_customer(item) for item in raw.get("customers") or []],
        deliveries=[deserialize_delivery(item) for item in raw.get("deliveries") or []],
        transactions=[deserialize_transaction(item) for item in raw.get("transactions") or []],
        reminders=[deserialize_reminder(item) for item in raw.get("reminders") or []],
        bookings=[deserialize_booking(item) for item in raw.get("bookings") or []],
        settings=settings,
    )


def _money(raw: Any) -> Decimal:
    return Decimal(str(raw)) if raw is not None else Decimal("0")


def _money_to_json(amount: Decimal) -> int | float | str:
    # Integral amounts stay integers so documents match what the web app wrote.
    if amount == amount.to_integral_value():
        return int(amount)
    as_float = float(amount)
    if Decimal(repr(as_float)) == amount:
        return as_float
    # Too many digits for a float; the exact decimal text reloads unchanged.
    return str(amount)


def _without_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _optional_text(raw: Any) -> Optional[str]:
    return str(raw) if raw is not None else None


def serialize_customer(record: Customer) -> Dict[str, Any]:
    return _without_none({
        "id": record.id,
        "name": record.name,
        "phone": record.phone,
        "address": record.address,
        "pricePerJar": _money_to_json(record.price_per_jar),
        "balance": _money_to_json(record.balance),
        "active": record.active,
        "averageConsumptionDays": record.average_consumption_days,
    })


def deserialize_customer(raw: Mapping[str, Any]) -> Customer:
    consumption = raw.get("averageConsumptionDays")
    return Customer(
        id=str(raw["id"]),
        name=str(raw["name"]),
        phone=str(raw.get("phone", "")),
        address=str(raw.get("address", "")),
        price_per_jar=_money(raw["pricePerJar"]),
        balance=_money(raw.get("balance")),
        active=bool(raw.get("active", True)),
        average_consumption_days=int(consumption) if consumption is not None else None,
    )


def serialize_delivery(record: Delivery) -> Dict[str, Any]:
    return _without_none({
        "id": record.id,
        "customerId": record.customer_id,
        "date": record.date,
        "quantity": record.quantity,
        "timestamp": record.timestamp,
        "note": record.note,
    })


def deserialize_delivery(raw: Mapping[str, Any]) -> Delivery:
    return Delivery(
        id=str(raw["id"]),
        customer_id=str(raw["customerId"]),
        date=str(raw["date"]),
        quantity=int(raw["quantity"]),
        timestamp=int(raw.get("timestamp", 0)),
        note=_optional_text(raw.get("note")),
    )


def serialize_transaction(record: Transaction) -> Dict[str, Any]:
    return _without_none({
        "id": record.id,
        "customerId": record.customer_id,
        "date": record.date,
        "amount": _money_to_json(record.amount),
        "type": record.type,
        "method": record.method,
        "notes": record.notes,
        "timestamp": record.timestamp,
    })


def deserialize_transaction(raw: Mapping[str, Any]) -> Transaction:
    """Decode a ledger entry, rejecting unknown transaction types."""

    kind = TransactionType(str(raw["type"])).value
    return Transaction(
        id=str(raw["id"]),
        customer_id=str(raw["customerId"]),
        date=str(raw["date"]),
        amount=_money(raw["amount"]),
        type=kind,
        timestamp=int(raw.get("timestamp", 0)),
        method=_optional_text(raw.get("method")),
        notes=_optional_text(raw.get("notes")),
    )


def serialize_booking(record: Booking) -> Dict[str, Any]:
    return _without_none({
        "id": record.id,
        "customerId": record.customer_id,
        "date": record.date,
        "quantity": record.quantity,
        "status": record.status,
        "note": record.note,
    })


def deserialize_booking(raw: Mapping[str, Any]) -> Booking:
    return Booking(
        id=str(raw["id"]),
        customer_id=str(raw["customerId"]),
        date=str(raw["date"]),
        quantity=int(raw["quantity"]),
        status=str(raw["status"]),
        note=_optional_text(raw.get("note")),
    )


def serialize_reminder(record: ScheduledReminder) -> Dict[str, Any]:
    return _without_none({
        "id": record.id,
        "customerId": record.customer_id,
        "scheduledDate": record.scheduled_date,
        "type": record.type,
        "status": record.status,
        "note": record.note,
    })


def deserialize_reminder(raw: Mapping[str, Any]) -> ScheduledReminder:
    return ScheduledReminder(
        id=str(raw["id"]),
        customer_id=str(raw["customerId"]),
        scheduled_date=str(raw["scheduledDate"]),
        type=str(raw["type"]),
        status=str(raw["status"]),
        note=_optional_text(raw.get("note")),
    )


def serialize_settings(record: BusinessSettings) -> Dict[str, Any]:
    return {
        "merchantUpiId": record.merchant_upi_id,
        "merchantName": record.merchant_name,
        "currency": record.currency,
        "autoSmsPreference": record.auto_sms_preference,
    }


def deserialize_settings(raw: Mapping[str, Any]) -> BusinessSettings:
    defaults = default_settings()
    return BusinessSettings(
        merchant_upi_id=str(raw.get("merchantUpiId", defaults.merchant_upi_id)),
        merchant_name=str(raw.get("merchantName", defaults.merchant_name)),
        currency=str(raw.get("currency", defaults.currency)),
        auto_sms_preference=bool(raw.get("autoSmsPreference", False)),
    )
