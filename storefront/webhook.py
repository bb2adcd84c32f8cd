import json

import stripe

from storefront.config import Settings
from storefront.errors import InvalidIntentStateError
from storefront.events import (
    PaymentIntentPaymentFailed,
    PaymentIntentSucceeded,
    SourceChargeable,
    SourceFailed,
    WebhookEvent,
    classify_event,
)
from storefront.log import get_logger, log_webhook_event
from storefront.stripe_objects import as_dict
from storefront.stripe_service import PaymentIntentService

logger = get_logger(__name__)


class WebhookDispatcher:
    """Authenticates Stripe deliveries and routes them to PaymentIntent operations.

    Deliveries are at-least-once and unordered. There is no event ledger, the
    only guard against confirming twice is the status check in
    PaymentIntentService.confirm_with_source.
    """

    def __init__(self, settings: Settings, payments: PaymentIntentService) -> None:
        self._settings = settings
        self._payments = payments

    def construct_event(self, payload: bytes, signature: str | None) -> dict:
        """Verify and parse a delivery.

        Raises:
            ValueError: If the payload is not valid JSON.
            stripe.SignatureVerificationError: If the signature does not match.
        """
        secret = self._settings.stripe_webhook_secret
        if secret:
            return as_dict(stripe.Webhook.construct_event(payload, signature, secret))

        logger.warning("STRIPE_WEBHOOK_SECRET is not set, accepting unsigned webhook payload")
        event = json.loads(payload)
        if not isinstance(event, dict):
            raise ValueError("Webhook payload is not a JSON object")
        return event

    async def dispatch(self, event) -> WebhookEvent:
        """Run the action for one verified event.

        Raises:
            InvalidIntentStateError: If a chargeable source targets an intent
                that no longer requires a payment method.
            StripeServiceError: If a Stripe call fails.
        """
        data = event.get("data") or {}
        classified = classify_event(event.get("type") or "", data.get("object") or {})

        if isinstance(classified, PaymentIntentSucceeded):
            log_webhook_event(
                logger,
                classified.event_type,
                classified.object_id,
                result="handled",
                detail=f"payment for PaymentIntent {classified.object_id} succeeded",
            )

        elif isinstance(classified, PaymentIntentPaymentFailed):
            log_webhook_event(
                logger,
                classified.event_type,
                classified.object_id,
                result="handled",
                detail=(
                    f"payment on {classified.failed_object} {classified.failed_id} "
                    f"of type {classified.failed_type} failed: {classified.message}"
                ),
            )

        elif isinstance(classified, SourceChargeable):
            try:
                await self._payments.confirm_with_source(
                    classified.payment_intent_id, classified.object_id
                )
            except InvalidIntentStateError as e:
                log_webhook_event(
                    logger,
                    classified.event_type,
                    classified.object_id,
                    result="rejected",
                    payment_intent_id=classified.payment_intent_id,
                    error=str(e),
                )
                raise
            log_webhook_event(
                logger,
                classified.event_type,
                classified.object_id,
                result="handled",
                payment_intent_id=classified.payment_intent_id,
                detail="chargeable source confirmed its PaymentIntent",
            )

        elif isinstance(classified, SourceFailed):
            await self._payments.cancel(classified.payment_intent_id)
            log_webhook_event(
                logger,
                classified.event_type,
                classified.object_id,
                result="handled",
                payment_intent_id=classified.payment_intent_id,
                detail=f"source {classified.status}, PaymentIntent canceled",
            )

        else:
            log_webhook_event(logger, classified.event_type, classified.object_id, result="ignored")

        return classified
