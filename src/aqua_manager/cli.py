"""Command-line entry points for Aqua Manager.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the command objects consumed by the business
layer, and printing results. Keeping the CLI thin ensures the same parser
configuration can be reused by tests, scripts, or any alternative front-end.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import assistant, core_logic, data_manager, log
from .constants import AgentMode, PaymentMethod, ReminderType, Timeframe


SubParsers = argparse._SubParsersAction


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed.

    ``mutates`` marks commands whose success must be persisted.
    """

    name: str
    help_text: str
    register: Callable[[SubParsers], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]
    mutates: bool = False


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="aqua-cli",
        description="Command-line tools for the Aqua Manager delivery ledger.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched for upward from the working directory by default).",
    )
    return parser


def configure_subcommands(parser: argparse.ArgumentParser) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    assistant_specs = register_assistant_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values(), *assistant_specs.values()])


def _spec(
    name: str,
    help_text: str,
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
    add_arguments: Callable[[argparse.ArgumentParser], None],
    *,
    mutates: bool = False,
) -> CommandSpec:
    def registrar(action: SubParsers) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        add_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute, mutates=mutates)


def _no_arguments(parser: argparse.ArgumentParser) -> None:
    return None


def register_write_commands(subparsers: SubParsers) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as deliveries and payments."""
    specs = {
        "add-customer": register_add_customer_command(),
        "edit-customer": register_edit_customer_command(),
        "remove-customer": register_remove_customer_command(),
        "deliver": register_deliver_command(),
        "pay": register_pay_command(),
        "book": register_book_command(),
        "fulfill": register_fulfill_command(),
        "cancel": register_cancel_command(),
        "remind": register_remind_command(),
        "mark-sent": register_mark_sent_command(),
        "delete-reminder": register_delete_reminder_command(),
        "settings": register_settings_command(),
        "import": register_import_command(),
        "reconcile": register_reconcile_command(),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(subparsers: SubParsers) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as listings and reports."""
    specs = {
        "customers": _spec("customers", "List customers and their balances.", run_customers_report, _no_arguments),
        "log": register_log_command(),
        "statement": register_statement_command(),
        "bookings": _spec("bookings", "List pending bookings.", run_bookings_report, _no_arguments),
        "reminders": _spec("reminders", "List pending reminders by date.", run_reminders_report, _no_arguments),
        "dashboard": _spec("dashboard", "Show today's headline figures.", run_dashboard_report, _no_arguments),
        "report": register_report_command(),
        "verify": _spec("verify", "Check cached balances against the ledger.", run_verify, _no_arguments),
        "export": register_export_command(),
        "export-workbook": register_export_workbook_command(),
        "upi-link": register_upi_link_command(),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_assistant_commands(subparsers: SubParsers) -> Dict[str, CommandSpec]:
    """Declare commands that consult the AI collaborator."""
    specs = {
        "sms": register_sms_command(),
        "sms-reminder": register_sms_reminder_command(),
        "predict": _spec("predict", "Predict customers who will need a refill soon.", run_predict, _no_arguments),
        "ask": register_ask_command(),
        "health": _spec("health", "Summarise business health with a tip.", run_health, _no_arguments),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_add_customer_command() -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""

    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--name", required=True)
        parser.add_argument("--phone", default="")
        parser.add_argument("--address", default="")
        parser.add_argument("--price-per-jar", required=True)

    return _spec("add-customer", "Register a new customer.", run_add_customer, add_arguments, mutates=True)


def register_edit_customer_command() -> CommandSpec:
    """Register the parser and executor for ``edit-customer``."""

    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--name", default=None)
        parser.add_argument("--phone", default=None)
        parser.add_argument("--address", default=None)
        parser.add_argument("--price-per-jar", default=None)
        status = parser.add_mutually_exclusive_group()
        status.add_argument("--active", dest="active", action="store_true", default=None)
        status.add_argument("--inactive", dest="active", action="store_false")

    return _spec("edit-customer", "Update a customer's details.", run_edit_customer, add_arguments, mutates=True)


def register_remove_customer_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-id", required=True)

    return _spec(
        "remove-customer",
        "Delete a customer record (ledger entries are kept).",
        run_remove_customer,
        add_arguments,
        mutates=True,
    )


def register_deliver_command() -> CommandSpec:
    """Register the parser and executor for ``deliver``."""

    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--quantity", type=int, required=True)
        parser.add_argument("--date", default=None, help="Delivery date (YYYY-MM-DD); defaults to today.")
        parser.add_argument("--note", default=None)

    return _spec("deliver", "Log a delivery and bill the customer.", run_deliver, add_arguments, mutates=True)


def register_pay_command() -> CommandSpec:
    """Register the parser and executor for ``pay``."""

    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--amount", required=True)
        parser.add_argument(
            "--method",
            choices=[member.value for member in PaymentMethod],
            default=PaymentMethod.CASH.value,
        )

    return _spec("pay", "Collect a payment from a customer.", run_pay, add_arguments, mutates=True)


def register_book_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--quantity", type=int, required=True)
        parser.add_argument("--note", default=None)

    return _spec("book", "Place a booking for later delivery.", run_book, add_arguments, mutates=True)


def register_fulfill_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--booking-id", required=True)

    return _spec("fulfill", "Deliver a pending booking today.", run_fulfill, add_arguments, mutates=True)


def register_cancel_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--booking-id", required=True)

    return _spec("cancel", "Cancel a pending booking.", run_cancel, add_arguments, mutates=True)


def register_remind_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--date", required=True, help="Scheduled date (YYYY-MM-DD).")
        parser.add_argument(
            "--type",
            dest="reminder_type",
            choices=[member.value for member in ReminderType],
            default=ReminderType.UPCOMING_DELIVERY.value,
        )
        parser.add_argument("--note", default=None)

    return _spec("remind", "Schedule a reminder for a customer.", run_remind, add_arguments, mutates=True)


def register_mark_sent_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--reminder-id", required=True)

    return _spec("mark-sent", "Mark a reminder as sent.", run_mark_sent, add_arguments, mutates=True)


def register_delete_reminder_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--reminder-id", required=True)

    return _spec("delete-reminder", "Delete a reminder.", run_delete_reminder, add_arguments, mutates=True)


def register_settings_command() -> CommandSpec:
    """Register the parser and executor for ``settings``."""

    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--merchant-upi-id", default=None)
        parser.add_argument("--merchant-name", default=None)
        parser.add_argument("--currency", default=None)
        sms = parser.add_mutually_exclusive_group()
        sms.add_argument("--auto-sms", dest="auto_sms_preference", action="store_true", default=None)
        sms.add_argument("--no-auto-sms", dest="auto_sms_preference", action="store_false")

    return _spec("settings", "Show or update business settings.", run_settings, add_arguments, mutates=True)


def register_import_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--file", type=Path, required=True)

    return _spec("import", "Overwrite all data with a JSON backup.", run_import, add_arguments, mutates=True)


def register_reconcile_command() -> CommandSpec:
    return _spec(
        "reconcile",
        "Rewrite cached balances from the ledger.",
        run_reconcile,
        _no_arguments,
        mutates=True,
    )


def register_log_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-id", default=None)

    return _spec("log", "Display the ledger, newest first.", run_log_report, add_arguments)


def register_statement_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-id", required=True)

    return _spec("statement", "Show one customer's deliveries and ledger.", run_statement, add_arguments)


def register_report_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--timeframe",
            choices=[member.value for member in Timeframe],
            default=Timeframe.WEEKLY.value,
        )

    return _spec("report", "Show billing vs collections.", run_financial_report, add_arguments)


def register_export_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--file", type=Path, default=None, help="Defaults to aqua_backup_<today>.json.")

    return _spec("export", "Write a JSON backup of all data.", run_export, add_arguments)


def register_export_workbook_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--file", type=Path, required=True)

    return _spec("export-workbook", "Write customers and the ledger to Excel.", run_export_workbook, add_arguments)


def register_upi_link_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--amount", default=None)

    return _spec("upi-link", "Print the merchant UPI payment link.", run_upi_link, add_arguments)


def register_sms_command() -> CommandSpec:
    """Register the parser and executor for ``sms``."""

    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("kind", choices=["delivery", "payment", "dues", "refill", "booking"])
        parser.add_argument("--id", dest="record_id", required=True, help="Delivery, transaction, customer or booking id.")

    return _spec("sms", "Draft a bilingual SMS for a customer.", run_sms, add_arguments)


def register_sms_reminder_command() -> CommandSpec:
    """Register ``sms-reminder``, which drafts the message and marks the reminder sent."""

    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--id", dest="record_id", required=True, help="Reminder id.")

    return _spec(
        "sms-reminder",
        "Draft the SMS for a scheduled reminder and mark it sent.",
        run_sms_reminder,
        add_arguments,
        mutates=True,
    )


def register_ask_command() -> CommandSpec:
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("message", nargs="+", help="Conversation turns, alternating user/model, ending with user.")
        parser.add_argument("--mode", choices=[member.value for member in AgentMode], default=AgentMode.MERCHANT.value)

    return _spec("ask", "Ask the AI business assistant.", run_ask, add_arguments)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations.

    Without ``--config`` the data layer searches upward from the working
    directory for ``config.ini``.
    """
    target = Path(config_path) if config_path is not None else None
    return core_logic.load_runtime_context(target)


def build_generator(context: core_logic.RuntimeContext) -> assistant.TextGenerator:
    return assistant.GeminiCollaborator.from_settings(context.settings)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(specs: Iterable[CommandSpec]) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def parse_money(raw: str) -> Decimal:
    """Parse a CLI money argument, rejecting non-numeric text."""
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise ValueError(f"Not a valid amount: {raw!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Not a valid amount: {raw!r}")
    return value


def _report_missing(kind: str, record_id: str) -> int:
    print(f"No {kind} '{record_id}'; nothing changed.")
    return 0


def translate_add_customer(args: argparse.Namespace) -> core_logic.CustomerCommand:
    """Translate CLI args into an add-customer command object."""
    return core_logic.CustomerCommand(
        name=args.name,
        phone=args.phone,
        address=args.address,
        price_per_jar=parse_money(args.price_per_jar),
    )


def translate_edit_customer(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect only the customer fields supplied on the command line."""
    changes: Dict[str, Any] = {}
    for field_name in ("name", "phone", "address"):
        value = getattr(args, field_name, None)
        if value is not None:
            changes[field_name] = value
    if getattr(args, "price_per_jar", None) is not None:
        changes["price_per_jar"] = parse_money(args.price_per_jar)
    if getattr(args, "active", None) is not None:
        changes["active"] = args.active
    return changes


def translate_deliver(args: argparse.Namespace) -> core_logic.DeliveryCommand:
    """Translate CLI args into a delivery command object."""
    return core_logic.DeliveryCommand(
        customer_id=args.customer_id,
        quantity=args.quantity,
        date=args.date,
        note=args.note,
    )


def translate_pay(args: argparse.Namespace) -> core_logic.PaymentCommand:
    """Translate CLI args into a payment command object."""
    return core_logic.PaymentCommand(
        customer_id=args.customer_id,
        amount=parse_money(args.amount),
        method=PaymentMethod(args.method),
    )


def translate_book(args: argparse.Namespace) -> core_logic.BookingCommand:
    return core_logic.BookingCommand(customer_id=args.customer_id, quantity=args.quantity, note=args.note)


def translate_remind(args: argparse.Namespace) -> core_logic.ReminderCommand:
    return core_logic.ReminderCommand(
        customer_id=args.customer_id,
        scheduled_date=args.date,
        reminder_type=ReminderType(args.reminder_type),
        note=args.note,
    )


def translate_settings(args: argparse.Namespace) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    for field_name in ("merchant_upi_id", "merchant_name", "currency", "auto_sms_preference"):
        value = getattr(args, field_name, None)
        if value is not None:
            changes[field_name] = value
    return changes


def run_add_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-customer workflow in the BLL."""
    customer = core_logic.add_customer(context, translate_add_customer(args))
    print(f"Added customer {customer.id}: {customer.name}")
    return 0


def run_edit_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    changes = translate_edit_customer(args)
    if not changes:
        print("Nothing to update.")
        return 0
    customer = core_logic.edit_customer(context, args.customer_id, **changes)
    if customer is None:
        return _report_missing("customer", args.customer_id)
    print(f"Updated customer {customer.id}")
    return 0


def run_remove_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    customer = core_logic.delete_customer(context, args.customer_id)
    if customer is None:
        return _report_missing("customer", args.customer_id)
    print(f"Removed customer {customer.id}: {customer.name}")
    return 0


def run_deliver(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the delivery workflow via the BLL."""
    receipt = core_logic.record_delivery(context, translate_deliver(args))
    if receipt is None:
        return _report_missing("customer", args.customer_id)
    print(f"Delivered {receipt.delivery.quantity} jars; billed {receipt.bill.amount} ({receipt.bill.id})")
    if context.state.settings.auto_sms_preference:
        customer = core_logic.find_customer(context, receipt.delivery.customer_id)
        payload = assistant.delivery_bill_payload(customer, receipt.delivery)
        print(assistant.generate_bilingual_sms(payload, build_generator(context)))
    return 0


def run_pay(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the payment workflow via the BLL."""
    payment = core_logic.collect_payment(context, translate_pay(args))
    if payment is None:
        return _report_missing("customer", args.customer_id)
    print(f"Received {payment.amount} by {payment.method} ({payment.id})")
    return 0


def run_book(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    booking = core_logic.add_booking(context, translate_book(args))
    if booking is None:
        return _report_missing("customer", args.customer_id)
    print(f"Booked {booking.quantity} jars ({booking.id})")
    return 0


def run_fulfill(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    receipt = core_logic.fulfill_booking(context, args.booking_id)
    if receipt is None:
        return _report_missing("pending booking", args.booking_id)
    print(f"Fulfilled booking {args.booking_id}; billed {receipt.bill.amount}")
    return 0


def run_cancel(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    booking = core_logic.cancel_booking(context, args.booking_id)
    if booking is None:
        return _report_missing("pending booking", args.booking_id)
    print(f"Cancelled booking {booking.id}")
    return 0


def run_remind(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    reminder = core_logic.schedule_reminder(context, translate_remind(args))
    if reminder is None:
        return _report_missing("customer", args.customer_id)
    print(f"Scheduled {reminder.type} reminder {reminder.id} for {reminder.scheduled_date}")
    return 0


def run_mark_sent(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    reminder = core_logic.mark_reminder_sent(context, args.reminder_id)
    if reminder is None:
        return _report_missing("reminder", args.reminder_id)
    print(f"Reminder {reminder.id} marked as sent")
    return 0


def run_delete_reminder(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    reminder = core_logic.delete_reminder(context, args.reminder_id)
    if reminder is None:
        return _report_missing("reminder", args.reminder_id)
    print(f"Deleted reminder {reminder.id}")
    return 0


def run_settings(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    changes = translate_settings(args)
    settings = core_logic.update_settings(context, **changes) if changes else context.state.settings
    print(f"Merchant: {settings.merchant_name} ({settings.merchant_upi_id})")
    print(f"Currency: {settings.currency}")
    print(f"Auto SMS: {'on' if settings.auto_sms_preference else 'off'}")
    return 0


def run_import(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Replace all data with the contents of a backup file."""
    imported = data_manager.import_backup(args.file)
    core_logic.replace_state(context, imported)
    print(f"Imported {len(imported.customers)} customers and {len(imported.transactions)} transactions")
    return 0


def run_reconcile(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    corrected = core_logic.reconcile_balances(context)
    print(f"Corrected {len(corrected)} balances" + (f": {', '.join(corrected)}" if corrected else ""))
    return 0


def run_customers_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for customer in context.state.customers:
        status = "" if customer.active else " [inactive]"
        print(f"{customer.id}\t{customer.name}\t{customer.price_per_jar}/jar\tdue {customer.balance}{status}")
    return 0


def run_log_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the ledger reporting workflow."""
    for entry in core_logic.list_transactions(context, customer_id=args.customer_id):
        method = f" {entry.method}" if entry.method else ""
        print(f"{entry.date}\t{entry.id}\t{entry.customer_id}\t{entry.type}{method}\t{entry.amount}\t{entry.notes or ''}")
    return 0


def run_statement(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    statement = core_logic.customer_history(context, args.customer_id)
    if statement is None:
        return _report_missing("customer", args.customer_id)
    print(f"{statement.customer.name} ({statement.customer.id})")
    print(f"Billed {statement.total_billed}, paid {statement.total_paid}, due {statement.customer.balance}")
    for entry in statement.transactions:
        print(f"  {entry.date}\t{entry.type}\t{entry.amount}\t{entry.notes or entry.method or ''}")
    return 0


def run_bookings_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for booking in core_logic.pending_bookings(context):
        print(f"{booking.id}\t{booking.customer_id}\t{booking.quantity} jars\t{booking.date}\t{booking.note or ''}")
    return 0


def run_reminders_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for reminder in core_logic.pending_reminders(context):
        print(f"{reminder.scheduled_date}\t{reminder.id}\t{reminder.customer_id}\t{reminder.type}\t{reminder.note or ''}")
    return 0


def run_dashboard_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    stats = core_logic.calculate_dashboard_stats(context)
    print(f"Jars delivered today: {stats['todays_deliveries']}")
    print(f"Total outstanding: {stats['total_outstanding']}")
    print(f"Collected this month: {stats['monthly_revenue']}")
    print(f"Pending bookings: {stats['pending_bookings']}")
    dues = core_logic.customers_with_dues(context)
    if dues:
        print("Top dues:")
    for customer in dues[:5]:
        print(f"  {customer.id}\t{customer.name}\t{customer.balance}")
    return 0


def run_financial_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the billing vs collections reporting workflow."""
    summary = core_logic.calculate_financial_summary(context)
    print(f"Lifetime billing: {summary['total_sales']}")
    print(f"Realized cash: {summary['total_collection']}")
    print(f"Outstanding: {summary['outstanding']}")
    for totals in core_logic.build_sales_series(context, Timeframe(args.timeframe)):
        print(f"{totals.date}\tsales {totals.sales}\tcollection {totals.collection}")
    return 0


def run_verify(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    mismatches = core_logic.verify_ledger(context)
    if not mismatches:
        print("Ledger consistent.")
        return 0
    for customer_id, (cached, derived) in sorted(mismatches.items()):
        print(f"{customer_id}: cached {cached}, ledger {derived}")
    return 2


def run_export(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    destination = args.file or Path(data_manager.default_backup_name(core_logic.current_day()))
    written = data_manager.export_backup(context.state, destination)
    print(f"Backup written to {written}")
    return 0


def run_export_workbook(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    written = data_manager.export_workbook(context.state, args.file)
    print(f"Workbook written to {written}")
    return 0


def run_upi_link(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    amount = parse_money(args.amount) if args.amount is not None else None
    print(core_logic.build_upi_link(context.state.settings, amount))
    return 0


def build_sms_payload(
    context: core_logic.RuntimeContext,
    kind: str,
    record_id: str,
) -> Optional[assistant.NotificationPayload]:
    """Resolve the records behind an SMS request into a typed payload."""
    if kind in ("refill", "dues"):
        customer = core_logic.find_customer(context, record_id)
        if customer is None:
            return None
        if kind == "refill":
            return assistant.refill_prompt_payload(customer)
        return assistant.payment_reminder_payload(customer)

    lookups = {
        "delivery": core_logic.find_delivery,
        "payment": core_logic.find_transaction,
        "booking": core_logic.find_booking,
        "reminder": core_logic.find_reminder,
    }
    record = lookups[kind](context, record_id)
    if record is None:
        return None
    customer = core_logic.find_customer(context, record.customer_id)
    if customer is None:
        return None
    if kind == "delivery":
        return assistant.delivery_bill_payload(customer, record)
    if kind == "payment":
        return assistant.payment_confirmation_payload(customer, record)
    if kind == "booking":
        return assistant.booking_confirmed_payload(customer, record)
    return assistant.reminder_payload(customer, record)


def run_sms(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    payload = build_sms_payload(context, args.kind, args.record_id)
    if payload is None:
        return _report_missing(args.kind, args.record_id)
    print(assistant.generate_bilingual_sms(payload, build_generator(context)))
    return 0


def run_sms_reminder(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    payload = build_sms_payload(context, "reminder", args.record_id)
    if payload is None:
        return _report_missing("reminder", args.record_id)
    print(assistant.generate_bilingual_sms(payload, build_generator(context)))
    core_logic.mark_reminder_sent(context, args.record_id)
    return 0


def run_predict(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    predictions = assistant.predict_refill_needs(context.state, build_generator(context))
    if not predictions:
        print("No refill predictions available.")
    for prediction in predictions:
        print(f"{prediction.customer_id}\t{prediction.reason}")
    return 0


def run_ask(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    roles = ["user", "model"]
    turns = list(args.message)
    # Turns alternate and the last one is always the user's.
    offset = (len(turns) - 1) % 2
    messages = [
        assistant.ChatMessage(role=roles[(index + offset) % 2], text=text)
        for index, text in enumerate(turns)
    ]
    reply = assistant.run_agent_conversation(messages, AgentMode(args.mode), context.state, build_generator(context))
    print(reply)
    return 0


def run_health(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    report = assistant.analyze_business_health(context.state, build_generator(context))
    print(report.summary)
    print(f"Tip: {report.actionable_tip}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, (core_logic.BusinessRuleViolation, ValueError)):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def persist_state(context: core_logic.RuntimeContext) -> None:
    """Persist the aggregate after a successful mutating command."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0 and command_table[args.command].mutates:
            persist_state(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
