"""Classification of Stripe webhook payloads.

Each delivery maps to exactly one variant, keyed on the kind of object it
carries and the event type (or the source status). Anything else becomes
UnhandledEvent.
"""

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict

SOURCE_TERMINAL_STATUSES = ("failed", "canceled")


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: str
    object_id: str | None = None


class PaymentIntentSucceeded(_Event):
    kind: Literal["payment_intent_succeeded"] = "payment_intent_succeeded"


class PaymentIntentPaymentFailed(_Event):
    kind: Literal["payment_intent_payment_failed"] = "payment_intent_payment_failed"
    failed_object: str | None = None  # "payment_method" or "source"
    failed_id: str | None = None
    failed_type: str | None = None
    message: str | None = None


class SourceChargeable(_Event):
    kind: Literal["source_chargeable"] = "source_chargeable"
    payment_intent_id: str


class SourceFailed(_Event):
    kind: Literal["source_failed"] = "source_failed"
    payment_intent_id: str
    status: str


class UnhandledEvent(_Event):
    kind: Literal["unhandled"] = "unhandled"
    object_kind: str | None = None


WebhookEvent = Union[
    PaymentIntentSucceeded,
    PaymentIntentPaymentFailed,
    SourceChargeable,
    SourceFailed,
    UnhandledEvent,
]


def _failed_payment(event_type: str, intent) -> PaymentIntentPaymentFailed:
    last_error = intent.get("last_payment_error") or {}
    failed = last_error.get("payment_method") or last_error.get("source") or {}
    return PaymentIntentPaymentFailed(
        event_type=event_type,
        object_id=intent.get("id"),
        failed_object=failed.get("object"),
        failed_id=failed.get("id"),
        failed_type=failed.get("type"),
        message=last_error.get("message"),
    )


def classify_event(event_type: str, obj) -> WebhookEvent:
    object_kind = obj.get("object")
    object_id = obj.get("id")

    if object_kind == "payment_intent":
        if event_type == "payment_intent.succeeded":
            return PaymentIntentSucceeded(event_type=event_type, object_id=object_id)
        if event_type == "payment_intent.payment_failed":
            return _failed_payment(event_type, obj)

    if object_kind == "source":
        metadata = obj.get("metadata") or {}
        payment_intent_id = metadata.get("paymentIntent")
        status = obj.get("status")
        if payment_intent_id and status == "chargeable":
            return SourceChargeable(
                event_type=event_type,
                object_id=object_id,
                payment_intent_id=payment_intent_id,
            )
        if payment_intent_id and status in SOURCE_TERMINAL_STATUSES:
            return SourceFailed(
                event_type=event_type,
                object_id=object_id,
                payment_intent_id=payment_intent_id,
                status=status,
            )

    return UnhandledEvent(event_type=event_type, object_id=object_id, object_kind=object_kind)
