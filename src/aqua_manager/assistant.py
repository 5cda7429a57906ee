"""Boundary to the generative-AI collaborator.

Every request sent to the model is described by a pydantic schema and
validated before transmission; every structured reply is validated after
receipt. The collaborator is opaque: any failure it produces (transport
errors, API errors, empty or malformed replies) is logged and replaced with a
fixed fallback value so that callers, and the ledger, never see it.

The functions here only read the aggregate. They never mutate it, so a slow
or failing request cannot leave the ledger half-updated.
"""

from __future__ import annotations

import json
import os
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Protocol, Sequence, Union

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from . import data_manager, log
from .constants import DEFAULT_ASSISTANT_MODEL, AgentMode, BookingStatus, ReminderType, TransactionType


SMS_EMPTY_FALLBACK = "Error generating message."
SMS_FAILURE_FALLBACK = "Failed to generate SMS. Please try manual messaging."
CHAT_EMPTY_FALLBACK = "I'm sorry, I couldn't process that."
CHAT_FAILURE_FALLBACK = "The AI Agent is busy. Try again shortly."
HEALTH_FALLBACK_SUMMARY = "Analysis unavailable."
HEALTH_FALLBACK_TIP = "Keep tracking your bookings."

SMS_SYSTEM_PROMPT = (
    "You write customer SMS messages for a water can delivery business called Aqua Manager.\n"
    "Every message is bilingual: English first, then Tamil.\n"
    "Keep it short, clear, polite and professional, with SMS-friendly line breaks."
)
MERCHANT_PROMPT = (
    "You are the Aqua Manager Advisor. Help the dealer manage orders, deliveries, "
    "and collections efficiently."
)
SUPPORT_PROMPT = (
    "You are the Aqua Manager Support Specialist. Draft professional replies to "
    "customer queries about orders and billing."
)

REFILL_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "customerId": {"type": "STRING"},
            "reason": {"type": "STRING"},
        },
        "required": ["customerId", "reason"],
    },
}
HEALTH_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING"},
        "actionableTip": {"type": "STRING"},
    },
    "required": ["summary", "actionableTip"],
}


class CollaboratorError(Exception):
    """Raised by a text generator when the collaborator cannot answer."""


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DailyDeliveryBill(_Schema):
    type: Literal["DAILY_DELIVERY_BILL"] = "DAILY_DELIVERY_BILL"
    customer_name: str
    quantity: int = Field(gt=0)
    rate: float
    total: float
    balance: float
    date: str
    note: Optional[str] = None


class PaymentConfirmation(_Schema):
    type: Literal["PAYMENT_CONFIRMATION"] = "PAYMENT_CONFIRMATION"
    customer_name: str
    amount: float = Field(gt=0)
    balance: float
    payment_method: Optional[str] = None
    date: str


class PaymentReminder(_Schema):
    type: Literal["PAYMENT_REMINDER"] = "PAYMENT_REMINDER"
    customer_name: str
    balance: float
    scheduled_date: Optional[str] = None
    note: Optional[str] = None


class RefillPrompt(_Schema):
    type: Literal["REFILL_PROMPT"] = "REFILL_PROMPT"
    customer_name: str


class BookingConfirmed(_Schema):
    type: Literal["BOOKING_CONFIRMED"] = "BOOKING_CONFIRMED"
    customer_name: str
    quantity: int = Field(gt=0)
    date: str
    note: Optional[str] = None


class UpcomingDeliveryReminder(_Schema):
    type: Literal["UPCOMING_DELIVERY_REMINDER"] = "UPCOMING_DELIVERY_REMINDER"
    customer_name: str
    scheduled_date: str
    note: Optional[str] = None


NotificationPayload = Annotated[
    Union[
        DailyDeliveryBill,
        PaymentConfirmation,
        PaymentReminder,
        RefillPrompt,
        BookingConfirmed,
        UpcomingDeliveryReminder,
    ],
    Field(discriminator="type"),
]
NOTIFICATION_ADAPTER: TypeAdapter[NotificationPayload] = TypeAdapter(NotificationPayload)


class CustomerDeliveryHistory(_Schema):
    id: str
    name: str
    deliveries: List[str]


class ChatMessage(_Schema):
    role: Literal["user", "model"]
    text: str


class BusinessMetrics(_Schema):
    customers: int
    outstanding: float
    pending_bookings: int


class HealthSnapshot(_Schema):
    revenue: float
    outstanding: float
    delivery_count: int


class RefillPrediction(_Schema):
    customer_id: str
    reason: str


class HealthReport(_Schema):
    summary: str
    actionable_tip: str


REFILL_PREDICTIONS_ADAPTER: TypeAdapter[List[RefillPrediction]] = TypeAdapter(List[RefillPrediction])
CHAT_TRANSCRIPT_ADAPTER: TypeAdapter[List[ChatMessage]] = TypeAdapter(List[ChatMessage])

HEALTH_FALLBACK = HealthReport(summary=HEALTH_FALLBACK_SUMMARY, actionable_tip=HEALTH_FALLBACK_TIP)


class TextGenerator(Protocol):
    """Anything able to turn a prompt into text; raises CollaboratorError."""

    def generate(
        self,
        contents: Any,
        *,
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        ...


class GeminiCollaborator:
    """:class:`TextGenerator` backed by the Gemini API via ``google-genai``.

    The client is created on first use so that commands which never reach the
    collaborator work without an API key. Timeouts are enforced by the client.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str = DEFAULT_ASSISTANT_MODEL,
        timeout_seconds: int = 30,
        client: Optional[genai.Client] = None,
    ) -> None:
        self.model = model
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: data_manager.ConfigSettings) -> "GeminiCollaborator":
        return cls(
            api_key=os.environ.get(settings.api_key_variable),
            model=settings.assistant_model,
            timeout_seconds=settings.timeout_seconds,
        )

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise CollaboratorError("No API key configured for the AI assistant")
            self._client = genai.Client(
                api_key=self._api_key,
                http_options=types.HttpOptions(timeout=self._timeout_seconds * 1000),
            )
        return self._client

    def generate(
        self,
        contents: Any,
        *,
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            response_mime_type="application/json" if response_schema else None,
            response_schema=response_schema,
        )
        try:
            response = self._get_client().models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except (genai_errors.APIError, httpx.HTTPError, OSError) as exc:
            raise CollaboratorError(f"Gemini request failed: {exc}") from exc
        return response.text or ""


def _as_float(amount: Decimal) -> float:
    return float(amount)


def delivery_bill_payload(customer: data_manager.Customer, delivery: data_manager.Delivery) -> DailyDeliveryBill:
    """Describe a delivery bill; ``balance`` is the customer's current due."""
    return DailyDeliveryBill(
        customer_name=customer.name,
        quantity=delivery.quantity,
        rate=_as_float(customer.price_per_jar),
        total=_as_float(customer.price_per_jar * delivery.quantity),
        balance=_as_float(customer.balance),
        date=delivery.date,
        note=delivery.note,
    )


def payment_confirmation_payload(
    customer: data_manager.Customer,
    transaction: data_manager.Transaction,
) -> PaymentConfirmation:
    if transaction.type != TransactionType.PAYMENT.value:
        raise ValueError(f"Transaction '{transaction.id}' is not a payment")
    return PaymentConfirmation(
        customer_name=customer.name,
        amount=_as_float(transaction.amount),
        balance=_as_float(customer.balance),
        payment_method=transaction.method,
        date=transaction.date,
    )


def refill_prompt_payload(customer: data_manager.Customer) -> RefillPrompt:
    return RefillPrompt(customer_name=customer.name)


def booking_confirmed_payload(customer: data_manager.Customer, booking: data_manager.Booking) -> BookingConfirmed:
    return BookingConfirmed(
        customer_name=customer.name,
        quantity=booking.quantity,
        date=booking.date,
        note=booking.note,
    )


def reminder_payload(
    customer: data_manager.Customer,
    reminder: data_manager.ScheduledReminder,
) -> Union[PaymentReminder, UpcomingDeliveryReminder]:
    """Pick the notification kind matching the reminder's type."""
    if reminder.type == ReminderType.PAYMENT_DUE.value:
        return PaymentReminder(
            customer_name=customer.name,
            balance=_as_float(customer.balance),
            scheduled_date=reminder.scheduled_date,
            note=reminder.note,
        )
    return UpcomingDeliveryReminder(
        customer_name=customer.name,
        scheduled_date=reminder.scheduled_date,
        note=reminder.note,
    )


def payment_reminder_payload(customer: data_manager.Customer) -> PaymentReminder:
    return PaymentReminder(customer_name=customer.name, balance=_as_float(customer.balance))


def predict_refill_needs(state: data_manager.AppState, generator: TextGenerator) -> List[RefillPrediction]:
    """Ask which customers are likely to run out of water within 48 hours.

    Predictions naming customers that do not exist are dropped. Any failure
    yields an empty list.
    """
    history = [
        CustomerDeliveryHistory(
            id=customer.id,
            name=customer.name,
            deliveries=[d.date for d in state.deliveries if d.customer_id == customer.id],
        ).to_payload()
        for customer in state.customers
    ]
    prompt = (
        "Based on this delivery history, identify which customers are likely to run out "
        "of water in the next 48 hours.\n"
        f"DATA: {json.dumps(history)}\n"
        "Return a JSON array of objects with customerId and a short 'reason' in English."
    )
    try:
        reply = generator.generate(prompt, response_schema=REFILL_RESPONSE_SCHEMA)
        predictions = REFILL_PREDICTIONS_ADAPTER.validate_json(reply or "[]")
    except (CollaboratorError, ValidationError) as exc:
        log.warning("Refill prediction unavailable: %s", exc)
        return []

    known = {customer.id for customer in state.customers}
    return [p for p in predictions if p.customer_id in known]


def generate_bilingual_sms(
    payload: Union[NotificationPayload, Mapping[str, Any]],
    generator: TextGenerator,
) -> str:
    """Draft an English + Tamil SMS for a typed notification.

    Args:
        payload: A notification model, or a mapping validated into one.
        generator: Collaborator used to draft the text.

    Returns:
        str: The draft, or a fixed fallback when the reply is empty or the
            collaborator fails.

    Raises:
        pydantic.ValidationError: If ``payload`` is not a valid notification.
    """
    if isinstance(payload, Mapping):
        payload = NOTIFICATION_ADAPTER.validate_python(payload)
    prompt = (
        f"Generate an SMS for: {json.dumps(payload.to_payload(), ensure_ascii=False)}.\n"
        "Contexts: DAILY_DELIVERY_BILL, PAYMENT_CONFIRMATION, PAYMENT_REMINDER, "
        "REFILL_PROMPT (ask if they need more water), BOOKING_CONFIRMED, "
        "or UPCOMING_DELIVERY_REMINDER.\n"
        "Output ONLY the final SMS message."
    )
    try:
        reply = generator.generate(prompt, system_instruction=SMS_SYSTEM_PROMPT)
    except CollaboratorError as exc:
        log.warning("SMS drafting failed for %s: %s", payload.type, exc)
        return SMS_FAILURE_FALLBACK
    return reply.strip() or SMS_EMPTY_FALLBACK


def business_metrics(state: data_manager.AppState) -> BusinessMetrics:
    return BusinessMetrics(
        customers=len(state.customers),
        outstanding=_as_float(sum((c.balance for c in state.customers), Decimal("0"))),
        pending_bookings=sum(1 for b in state.bookings if b.status == BookingStatus.PENDING.value),
    )


def run_agent_conversation(
    messages: Sequence[Union[ChatMessage, Mapping[str, Any]]],
    mode: AgentMode,
    state: data_manager.AppState,
    generator: TextGenerator,
) -> str:
    """Continue a chat with the merchant advisor or the support persona.

    The transcript is prefixed with a short business-metrics context turn.
    """
    transcript = CHAT_TRANSCRIPT_ADAPTER.validate_python(
        [m.to_payload() if isinstance(m, ChatMessage) else m for m in messages]
    )
    metrics = business_metrics(state)
    context_text = (
        "CURRENT BUSINESS DATA:\n"
        f"- Customers: {metrics.customers}\n"
        f"- Outstanding: {state.settings.currency} {metrics.outstanding:g}\n"
        f"- Pending Bookings: {metrics.pending_bookings}"
    )
    contents = [{"role": "user", "parts": [{"text": f"CONTEXT: {context_text}"}]}]
    contents.extend({"role": m.role, "parts": [{"text": m.text}]} for m in transcript)
    instruction = MERCHANT_PROMPT if mode is AgentMode.MERCHANT else SUPPORT_PROMPT

    try:
        reply = generator.generate(contents, system_instruction=instruction)
    except CollaboratorError as exc:
        log.warning("Agent conversation failed: %s", exc)
        return CHAT_FAILURE_FALLBACK
    return reply.strip() or CHAT_EMPTY_FALLBACK


def health_snapshot(state: data_manager.AppState) -> HealthSnapshot:
    return HealthSnapshot(
        revenue=_as_float(sum(
            (t.amount for t in state.transactions if t.type == TransactionType.PAYMENT.value),
            Decimal("0"),
        )),
        outstanding=_as_float(sum((c.balance for c in state.customers), Decimal("0"))),
        delivery_count=len(state.deliveries),
    )


def analyze_business_health(state: data_manager.AppState, generator: TextGenerator) -> HealthReport:
    """Summarise business health with one actionable tip; falls back on failure."""
    snapshot = health_snapshot(state)
    prompt = f"Analyze: {json.dumps(snapshot.to_payload())}"
    try:
        reply = generator.generate(prompt, response_schema=HEALTH_RESPONSE_SCHEMA)
        return HealthReport.model_validate_json(reply or "{}")
    except (CollaboratorError, ValidationError) as exc:
        log.warning("Health analysis unavailable: %s", exc)
        return HEALTH_FALLBACK
