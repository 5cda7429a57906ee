"""Unit tests verifying the business logic layer against an in-memory aggregate."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import Mock

import pytest

from aqua_manager import constants, core_logic, data_manager

from conftest import FIXED_MOMENT, make_customer


def _assert_ledger_consistent(context: core_logic.RuntimeContext) -> None:
    """Every cached balance must equal billed minus paid."""

    assert core_logic.verify_ledger(context) == {}


def _fresh_customer_context(settings, **customer_kwargs) -> core_logic.RuntimeContext:
    state = data_manager.AppState(customers=[make_customer(**customer_kwargs)])
    return core_logic.RuntimeContext(settings=settings, state=state)


# ---------------------------------------------------------------------------
# Runtime/context management
# ---------------------------------------------------------------------------


def test_load_runtime_context_returns_context(monkeypatch, tmp_path):
    """load_runtime_context should assemble settings and state into a context."""

    config_path = tmp_path / "config.ini"
    parser = Mock(name="parser")
    parsed_settings = data_manager.ConfigSettings(data_file=tmp_path / "aqua.json", business_name="Aqua")
    loaded_state = data_manager.AppState()

    find_config_file = Mock(return_value=config_path)
    read_config = Mock(return_value=parser)
    parse_settings = Mock(return_value=parsed_settings)
    load_state = Mock(return_value=loaded_state)

    monkeypatch.setattr(data_manager, "find_config_file", find_config_file)
    monkeypatch.setattr(data_manager, "read_config", read_config)
    monkeypatch.setattr(data_manager, "parse_settings", parse_settings)
    monkeypatch.setattr(data_manager, "load_state", load_state)

    context = core_logic.load_runtime_context(config_path)

    assert context.settings is parsed_settings
    assert context.state is loaded_state
    find_config_file.assert_called_once_with(config_path)
    read_config.assert_called_once_with(config_path.resolve())
    parse_settings.assert_called_once_with(parser, base_path=config_path.resolve().parent)
    load_state.assert_called_once_with(parsed_settings.data_file)


def test_load_runtime_context_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        core_logic.load_runtime_context(tmp_path / "missing.ini")


def test_persist_context_writes_the_aggregate(context):
    """Persisted changes should be visible to the next load."""

    core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c2", quantity=2))
    core_logic.persist_context(context)

    assert data_manager.load_state(context.settings.data_file) == context.state


def test_replace_state_overwrites_everything(context):
    """An import replaces the aggregate outright, without merging."""

    imported = data_manager.AppState(
        customers=[make_customer("z1")],
        settings=data_manager.BusinessSettings(merchant_upi_id="new@upi"),
    )

    core_logic.replace_state(context, imported)

    assert [c.id for c in context.state.customers] == ["z1"]
    assert context.state.transactions == []
    assert context.state.settings.merchant_upi_id == "new@upi"


# ---------------------------------------------------------------------------
# Identifier generation and validation helpers
# ---------------------------------------------------------------------------


def test_generate_record_id_uses_prefix_and_timestamp():
    moment = datetime(2024, 1, 2, 3, 4, 5, 678901, tzinfo=UTC)

    assert core_logic.generate_record_id(prefix="bill_", when=moment) == "bill_20240102030405678901"


def test_generate_record_id_suffixes_collisions():
    """Identifiers stay unique when generated within the same microsecond."""

    moment = datetime(2024, 1, 2, tzinfo=UTC)
    base = core_logic.generate_record_id(prefix="pay_", when=moment)

    assert core_logic.generate_record_id(prefix="pay_", when=moment, taken=[base]) == f"{base}-1"
    assert core_logic.generate_record_id(prefix="pay_", when=moment, taken=[base, f"{base}-1"]) == f"{base}-2"


def test_generate_record_id_defaults_to_current_time(set_fixed_datetime):
    set_fixed_datetime(FIXED_MOMENT)

    assert core_logic.generate_record_id() == "20240510093000000000"


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "3"])
def test_require_positive_quantity_rejects_invalid_values(quantity):
    with pytest.raises(ValueError):
        core_logic.require_positive_quantity(quantity)


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), Decimal("NaN"), 10])
def test_require_positive_money_rejects_invalid_values(amount):
    with pytest.raises(ValueError):
        core_logic.require_positive_money(amount)


def test_require_nonnegative_money_accepts_zero():
    core_logic.require_nonnegative_money(Decimal("0"))


def test_require_iso_date_normalises_and_rejects():
    assert core_logic.require_iso_date("2024-01-01") == "2024-01-01"
    with pytest.raises(ValueError):
        core_logic.require_iso_date("01/01/2024")


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


def test_add_customer_prepends_active_customer(context, set_fixed_datetime):
    """New customers start active with a zero balance, newest first."""

    set_fixed_datetime(FIXED_MOMENT)
    command = core_logic.CustomerCommand(
        name="  Hilltop School ",
        phone="9123456780",
        address="School Rd",
        price_per_jar=Decimal("45"),
    )

    customer = core_logic.add_customer(context, command)

    assert context.state.customers[0] == customer
    assert customer.id == "20240510093000000000"
    assert customer.name == "Hilltop School"
    assert customer.balance == Decimal("0")
    assert customer.active is True
    _assert_ledger_consistent(context)


def test_add_customer_rejects_blank_name(context):
    command = core_logic.CustomerCommand(name="  ", phone="", address="", price_per_jar=Decimal("10"))

    with pytest.raises(ValueError):
        core_logic.add_customer(context, command)
    assert len(context.state.customers) == 3


def test_edit_customer_updates_descriptive_fields(context):
    updated = core_logic.edit_customer(context, "c2", phone="9999999999", price_per_jar=Decimal("38"), active=False)

    assert updated is not None
    assert core_logic.find_customer(context, "c2") == updated
    assert updated.phone == "9999999999"
    assert updated.price_per_jar == Decimal("38")
    assert updated.active is False


def test_edit_customer_rejects_balance_changes(context):
    """Balances are owned by the ledger and cannot be edited directly."""

    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.edit_customer(context, "c1", balance=Decimal("0"))
    assert core_logic.find_customer(context, "c1").balance == Decimal("120")


def test_edit_customer_rejects_unknown_fields(context):
    with pytest.raises(KeyError):
        core_logic.edit_customer(context, "c1", nickname="Gym")


def test_edit_customer_unknown_id_is_noop(context):
    before = list(context.state.customers)

    assert core_logic.edit_customer(context, "missing", name="X") is None
    assert context.state.customers == before


def test_delete_customer_keeps_ledger(context):
    """Deleting a customer removes the record but never a transaction."""

    transactions_before = list(context.state.transactions)

    removed = core_logic.delete_customer(context, "c1")

    assert removed.id == "c1"
    assert [c.id for c in context.state.customers] == ["c2", "c3"]
    assert context.state.transactions == transactions_before
    _assert_ledger_consistent(context)


def test_delete_customer_unknown_id_is_noop(context):
    assert core_logic.delete_customer(context, "missing") is None
    assert len(context.state.customers) == 3


# ---------------------------------------------------------------------------
# Deliveries and payments
# ---------------------------------------------------------------------------


def test_delivery_then_payment_scenario(settings):
    """A 3-jar delivery at 40 bills 120; a 50 cash payment leaves 70 due."""

    context = _fresh_customer_context(settings, customer_id="c1", price="40")

    receipt = core_logic.record_delivery(
        context,
        core_logic.DeliveryCommand(customer_id="c1", quantity=3, date="2024-01-01"),
    )

    assert core_logic.find_customer(context, "c1").balance == Decimal("120")
    assert len(context.state.deliveries) == 1
    assert context.state.deliveries[0].quantity == 3
    assert context.state.deliveries[0].date == "2024-01-01"
    bills = [t for t in context.state.transactions if t.type == constants.TransactionType.BILL.value]
    assert bills == [receipt.bill]
    assert receipt.bill.amount == Decimal("120")

    payment = core_logic.collect_payment(
        context,
        core_logic.PaymentCommand(customer_id="c1", amount=Decimal("50"), method=constants.PaymentMethod.CASH),
    )

    assert core_logic.find_customer(context, "c1").balance == Decimal("70")
    payments = [t for t in context.state.transactions if t.type == constants.TransactionType.PAYMENT.value]
    assert payments == [payment]
    assert payment.amount == Decimal("50")
    assert payment.method == "CASH"
    _assert_ledger_consistent(context)


def test_record_delivery_builds_paired_bill(context, set_fixed_datetime):
    """The BILL mirrors the delivery's date, cost and note."""

    set_fixed_datetime(FIXED_MOMENT)

    receipt = core_logic.record_delivery(
        context,
        core_logic.DeliveryCommand(customer_id="c2", quantity=4, note="Leave at gate"),
    )

    delivery, bill = receipt.delivery, receipt.bill
    assert context.state.deliveries[0] == delivery
    assert context.state.transactions[0] == bill
    assert delivery.date == "2024-05-10"
    assert delivery.note == "Leave at gate"
    assert delivery.timestamp == int(FIXED_MOMENT.timestamp() * 1000)
    assert bill.id.startswith("bill_")
    assert bill.date == delivery.date
    assert bill.amount == Decimal("140")
    assert bill.notes == "Delivery: 4 jars (Leave at gate)"
    assert bill.method is None
    assert core_logic.find_customer(context, "c2").balance == Decimal("140")
    _assert_ledger_consistent(context)


def test_record_delivery_without_note_uses_plain_bill_note(context):
    receipt = core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c2", quantity=1))

    assert receipt.bill.notes == "Delivery: 1 jars"
    assert receipt.delivery.note is None


@pytest.mark.parametrize("quantity", [0, -2])
def test_record_delivery_rejects_non_positive_quantity(context, quantity):
    """Validation failures must leave the aggregate untouched."""

    snapshot = data_manager.serialize_state(context.state)

    with pytest.raises(ValueError):
        core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c1", quantity=quantity))
    assert data_manager.serialize_state(context.state) == snapshot


def test_record_delivery_rejects_invalid_date(context):
    with pytest.raises(ValueError):
        core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c1", quantity=1, date="tomorrow"))
    assert context.state.deliveries == []


def test_record_delivery_unknown_customer_is_noop(context):
    snapshot = data_manager.serialize_state(context.state)

    assert core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="ghost", quantity=1)) is None
    assert data_manager.serialize_state(context.state) == snapshot


def test_collect_payment_allows_overpayment(context):
    """Paying more than is due leaves the customer in credit."""

    core_logic.collect_payment(
        context,
        core_logic.PaymentCommand(customer_id="c1", amount=Decimal("200"), method=constants.PaymentMethod.UPI),
    )

    assert core_logic.find_customer(context, "c1").balance == Decimal("-80")
    _assert_ledger_consistent(context)


def test_collect_payment_is_dated_today(context, set_fixed_datetime):
    set_fixed_datetime(FIXED_MOMENT)

    payment = core_logic.collect_payment(
        context,
        core_logic.PaymentCommand(customer_id="c3", amount=Decimal("100"), method=constants.PaymentMethod.PENDING),
    )

    assert payment.id == "pay_20240510093000000000"
    assert payment.date == "2024-05-10"
    assert payment.method == "PENDING"
    assert context.state.transactions[0] == payment


def test_collect_payment_rounds_amount_to_cents(context):
    """Fractions of a cent never reach the ledger or the cached balance."""

    payment = core_logic.collect_payment(
        context,
        core_logic.PaymentCommand(
            customer_id="c2",
            amount=Decimal("0.12345678901234567891"),
            method=constants.PaymentMethod.CASH,
        ),
    )

    assert payment.amount == Decimal("0.12")
    assert core_logic.find_customer(context, "c2").balance == Decimal("-0.12")
    _assert_ledger_consistent(context)


def test_edit_customer_rounds_price_to_cents(context):
    updated = core_logic.edit_customer(context, "c2", price_per_jar=Decimal("35.555"))

    assert updated.price_per_jar == Decimal("35.56")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), Decimal("0.004")])
def test_collect_payment_rejects_non_positive_amount(context, amount):
    with pytest.raises(ValueError):
        core_logic.collect_payment(
            context,
            core_logic.PaymentCommand(customer_id="c1", amount=amount, method=constants.PaymentMethod.CASH),
        )
    assert core_logic.find_customer(context, "c1").balance == Decimal("120")


def test_collect_payment_rejects_unknown_method(context):
    with pytest.raises(core_logic.BusinessRuleViolation):
        core_logic.collect_payment(
            context,
            core_logic.PaymentCommand(customer_id="c1", amount=Decimal("5"), method="CHEQUE"),
        )


def test_collect_payment_unknown_customer_is_noop(context):
    count = len(context.state.transactions)

    result = core_logic.collect_payment(
        context,
        core_logic.PaymentCommand(customer_id="ghost", amount=Decimal("5"), method=constants.PaymentMethod.CASH),
    )

    assert result is None
    assert len(context.state.transactions) == count


def test_ledger_stays_consistent_across_mixed_operations(context, set_fixed_datetime):
    """The balance invariant holds after every step of a longer sequence."""

    moment = FIXED_MOMENT
    for step in range(6):
        set_fixed_datetime(moment + timedelta(seconds=step))
        if step % 2 == 0:
            core_logic.record_delivery(
                context,
                core_logic.DeliveryCommand(customer_id=f"c{step % 3 + 1}", quantity=step + 1),
            )
        else:
            core_logic.collect_payment(
                context,
                core_logic.PaymentCommand(
                    customer_id=f"c{step % 3 + 1}",
                    amount=Decimal("15.50"),
                    method=constants.PaymentMethod.CASH,
                ),
            )
        _assert_ledger_consistent(context)


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


def test_add_booking_creates_pending_booking(context, set_fixed_datetime):
    set_fixed_datetime(FIXED_MOMENT)

    booking = core_logic.add_booking(context, core_logic.BookingCommand(customer_id="c2", quantity=5, note="Event"))

    assert context.state.bookings[0] == booking
    assert booking.status == constants.BookingStatus.PENDING.value
    assert booking.date == "2024-05-10"
    assert core_logic.pending_bookings(context) == [booking]


def test_add_booking_unknown_customer_is_noop(context):
    assert core_logic.add_booking(context, core_logic.BookingCommand(customer_id="ghost", quantity=1)) is None
    assert context.state.bookings == []


def test_fulfill_booking_delivers_today_once(context, set_fixed_datetime):
    """Fulfilling bills exactly once and is dated on the day of fulfilment."""

    set_fixed_datetime(FIXED_MOMENT)
    booking = core_logic.add_booking(context, core_logic.BookingCommand(customer_id="c2", quantity=2, note="Party"))

    later = FIXED_MOMENT + timedelta(days=3)
    receipt = core_logic.fulfill_booking(context, booking.id, timestamp=later)

    assert receipt is not None
    assert receipt.delivery.date == "2024-05-13"
    assert receipt.delivery.note == f"Booking #{booking.id}: Party"
    assert receipt.bill.amount == Decimal("70")
    assert core_logic.find_booking(context, booking.id).status == constants.BookingStatus.FULFILLED.value

    transactions_after_first = len(context.state.transactions)
    assert core_logic.fulfill_booking(context, booking.id) is None
    assert len(context.state.transactions) == transactions_after_first
    assert len(context.state.deliveries) == 1
    _assert_ledger_consistent(context)


def test_fulfill_booking_without_note(context):
    booking = core_logic.add_booking(context, core_logic.BookingCommand(customer_id="c1", quantity=1))

    receipt = core_logic.fulfill_booking(context, booking.id)

    assert receipt.delivery.note == f"Booking #{booking.id}"


def test_fulfill_booking_unknown_id_is_noop(context):
    assert core_logic.fulfill_booking(context, "missing") is None
    assert context.state.deliveries == []


def test_fulfill_booking_for_deleted_customer_stays_pending(context):
    booking = core_logic.add_booking(context, core_logic.BookingCommand(customer_id="c2", quantity=1))
    core_logic.delete_customer(context, "c2")

    assert core_logic.fulfill_booking(context, booking.id) is None
    assert core_logic.find_booking(context, booking.id).status == constants.BookingStatus.PENDING.value
    assert context.state.deliveries == []


def test_cancel_booking_has_no_ledger_effect(context):
    booking = core_logic.add_booking(context, core_logic.BookingCommand(customer_id="c1", quantity=3))
    balances_before = {c.id: c.balance for c in context.state.customers}
    transactions_before = list(context.state.transactions)

    cancelled = core_logic.cancel_booking(context, booking.id)

    assert cancelled.status == constants.BookingStatus.CANCELLED.value
    assert {c.id: c.balance for c in context.state.customers} == balances_before
    assert context.state.transactions == transactions_before
    assert core_logic.fulfill_booking(context, booking.id) is None
    assert core_logic.cancel_booking(context, booking.id) is None


# ---------------------------------------------------------------------------
# Reminders and settings
# ---------------------------------------------------------------------------


def test_schedule_reminder_appends_pending_reminder(context):
    first = core_logic.schedule_reminder(
        context,
        core_logic.ReminderCommand(
            customer_id="c1",
            scheduled_date="2024-06-01",
            reminder_type=constants.ReminderType.PAYMENT_DUE,
        ),
    )
    second = core_logic.schedule_reminder(
        context,
        core_logic.ReminderCommand(
            customer_id="c2",
            scheduled_date="2024-05-20",
            reminder_type=constants.ReminderType.UPCOMING_DELIVERY,
            note="Weekly",
        ),
    )

    assert context.state.reminders == [first, second]
    assert first.status == constants.ReminderStatus.PENDING.value
    assert core_logic.pending_reminders(context) == [second, first]


def test_schedule_reminder_rejects_invalid_date(context):
    with pytest.raises(ValueError):
        core_logic.schedule_reminder(
            context,
            core_logic.ReminderCommand(
                customer_id="c1",
                scheduled_date="next week",
                reminder_type=constants.ReminderType.PAYMENT_DUE,
            ),
        )


def test_mark_reminder_sent_and_delete(context):
    reminder = core_logic.schedule_reminder(
        context,
        core_logic.ReminderCommand(
            customer_id="c1",
            scheduled_date="2024-06-01",
            reminder_type=constants.ReminderType.PAYMENT_DUE,
        ),
    )

    sent = core_logic.mark_reminder_sent(context, reminder.id)

    assert sent.status == constants.ReminderStatus.SENT.value
    assert core_logic.pending_reminders(context) == []
    assert core_logic.delete_reminder(context, reminder.id) == sent
    assert context.state.reminders == []
    assert core_logic.mark_reminder_sent(context, reminder.id) is None


def test_update_settings_merges_fields(context):
    settings = core_logic.update_settings(context, merchant_upi_id="shop@okbank", auto_sms_preference=True)

    assert settings.merchant_upi_id == "shop@okbank"
    assert settings.auto_sms_preference is True
    assert settings.merchant_name == "Aqua Manager Services"
    assert context.state.settings is settings


def test_update_settings_rejects_unknown_fields(context):
    with pytest.raises(KeyError):
        core_logic.update_settings(context, language="ta")


# ---------------------------------------------------------------------------
# Ledger verification
# ---------------------------------------------------------------------------


def test_seed_state_is_consistent(context):
    """Opening balances are backed by opening bills."""

    _assert_ledger_consistent(context)
    assert core_logic.calculate_balances(context) == {
        "c1": Decimal("120"),
        "c2": Decimal("0"),
        "c3": Decimal("500"),
    }


def test_verify_and_reconcile_repair_drifted_balance(context):
    """A cached balance that drifted from the ledger is reported and fixed."""

    drifted = replace(context.state.customers[1], balance=Decimal("99"))
    context.state.customers[1] = drifted

    assert core_logic.verify_ledger(context) == {"c2": (Decimal("99"), Decimal("0"))}
    assert core_logic.reconcile_balances(context) == ["c2"]
    assert core_logic.find_customer(context, "c2").balance == Decimal("0")
    _assert_ledger_consistent(context)


# ---------------------------------------------------------------------------
# Listings and reports
# ---------------------------------------------------------------------------


def test_list_transactions_orders_by_creation_timestamp(settings, set_fixed_datetime):
    """Presentation order follows creation time, not the date label."""

    context = _fresh_customer_context(settings, customer_id="c1", price="10")
    set_fixed_datetime(FIXED_MOMENT)
    older = core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c1", quantity=1, date="2024-05-20"))
    set_fixed_datetime(FIXED_MOMENT + timedelta(minutes=5))
    newer = core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c1", quantity=2, date="2024-05-01"))

    assert [t.id for t in core_logic.list_transactions(context)] == [newer.bill.id, older.bill.id]
    assert [d.id for d in core_logic.list_deliveries(context, customer_id="c1")] == [
        newer.delivery.id,
        older.delivery.id,
    ]
    assert core_logic.list_deliveries(context, on_date="2024-05-20") == [older.delivery]


def test_customer_history_totals(context):
    core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c1", quantity=2))
    core_logic.collect_payment(
        context,
        core_logic.PaymentCommand(customer_id="c1", amount=Decimal("30"), method=constants.PaymentMethod.CASH),
    )

    statement = core_logic.customer_history(context, "c1")

    assert statement.total_billed == Decimal("200")
    assert statement.total_paid == Decimal("30")
    assert statement.customer.balance == statement.total_billed - statement.total_paid
    assert len(statement.deliveries) == 1
    assert len(statement.transactions) == 3
    assert core_logic.customer_history(context, "ghost") is None


def test_customers_with_dues_sorted_by_balance(context):
    assert [c.id for c in core_logic.customers_with_dues(context)] == ["c3", "c1"]


def test_calculate_financial_summary(context):
    core_logic.collect_payment(
        context,
        core_logic.PaymentCommand(customer_id="c3", amount=Decimal("200"), method=constants.PaymentMethod.UPI),
    )

    summary = core_logic.calculate_financial_summary(context)

    assert summary == {
        "total_sales": Decimal("620"),
        "total_collection": Decimal("200"),
        "outstanding": Decimal("420"),
    }


def test_calculate_dashboard_stats(context, set_fixed_datetime):
    set_fixed_datetime(FIXED_MOMENT)
    core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c2", quantity=3))
    core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c2", quantity=1, date="2024-05-09"))
    core_logic.collect_payment(
        context,
        core_logic.PaymentCommand(customer_id="c1", amount=Decimal("20"), method=constants.PaymentMethod.CASH),
    )
    core_logic.add_booking(context, core_logic.BookingCommand(customer_id="c1", quantity=1))

    stats = core_logic.calculate_dashboard_stats(context, today=date(2024, 5, 10))

    assert stats["todays_deliveries"] == 3
    assert stats["total_outstanding"] == Decimal("740")
    assert stats["monthly_revenue"] == Decimal("20")
    assert stats["pending_bookings"] == 1


def test_build_sales_series_buckets_by_day(context, set_fixed_datetime):
    set_fixed_datetime(FIXED_MOMENT)
    core_logic.record_delivery(context, core_logic.DeliveryCommand(customer_id="c2", quantity=2, date="2024-05-08"))
    core_logic.collect_payment(
        context,
        core_logic.PaymentCommand(customer_id="c1", amount=Decimal("20"), method=constants.PaymentMethod.CASH),
    )

    series = core_logic.build_sales_series(context, constants.Timeframe.WEEKLY, today=date(2024, 5, 10))

    assert len(series) == 7
    assert series[0].date == "2024-05-04"
    assert series[-1].date == "2024-05-10"
    by_day = {totals.date: totals for totals in series}
    assert by_day["2024-05-08"].sales == Decimal("70")
    assert by_day["2024-05-10"].sales == Decimal("620")
    assert by_day["2024-05-10"].collection == Decimal("20")


@pytest.mark.parametrize(
    "timeframe, days",
    [
        (constants.Timeframe.DAILY, 1),
        (constants.Timeframe.WEEKLY, 7),
        (constants.Timeframe.MONTHLY, 30),
        (constants.Timeframe.ALL, 365),
    ],
)
def test_build_sales_series_window_lengths(empty_context, timeframe, days):
    assert len(core_logic.build_sales_series(empty_context, timeframe, today=date(2024, 5, 10))) == days


def test_build_upi_link():
    settings = data_manager.BusinessSettings(merchant_upi_id="shop@upi", merchant_name="Aqua Shop", currency="INR")

    assert core_logic.build_upi_link(settings) == "upi://pay?pa=shop@upi&pn=Aqua%20Shop&cu=INR"
    assert core_logic.build_upi_link(settings, Decimal("70")) == "upi://pay?pa=shop@upi&pn=Aqua%20Shop&am=70.00&cu=INR"
