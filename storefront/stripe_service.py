"""PaymentIntent and Checkout Session operations against Stripe.

Every call goes straight to Stripe and any failure is raised immediately as
StripeServiceError; nothing here retries or keeps local state.
"""

from decimal import ROUND_HALF_UP, Decimal

import stripe
from stripe import StripeClient

from storefront.config import Settings
from storefront.errors import CatalogLookupError, InvalidIntentStateError, StripeServiceError
from storefront.inventory import BasketItem, Catalog, calculate_payment_amount
from storefront.log import get_logger
from storefront.stripe_objects import as_dict

logger = get_logger(__name__)

REQUIRES_PAYMENT_METHOD = "requires_payment_method"


def to_minor_units(price: Decimal, quantity: int = 1) -> int:
    return int((Decimal(price) * quantity * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def correlation_metadata(campaign_id: str, product_id: str, quantity: int) -> dict[str, str]:
    return {
        "campaign_id": str(campaign_id),
        "product_id": str(product_id),
        "quantity": str(quantity),
    }


def new_stripe_client(settings: Settings) -> StripeClient:
    # Provider failures surface to the caller untouched, so no network retries.
    return StripeClient(
        settings.stripe_secret_key,
        stripe_version=settings.stripe_api_version,
        max_network_retries=0,
    )


class PaymentIntentService:
    """Creates, updates, confirms and cancels PaymentIntents.

    Usage:
        payments = PaymentIntentService(client, settings, catalog)
        intent = await payments.create(
            currency="usd",
            price=Decimal("10.00"),
            quantity=2,
            product_name="T-shirt",
            campaign_id="cmp_1",
            product_id="prod_1",
        )
    """

    def __init__(self, client: StripeClient, settings: Settings, catalog: Catalog) -> None:
        self._client = client
        self._settings = settings
        self._catalog = catalog

    async def create(
        self,
        *,
        currency: str,
        price: Decimal,
        quantity: int,
        product_name: str,
        campaign_id: str,
        product_id: str,
    ):
        """Create a PaymentIntent for `quantity` units at `price` (major units).

        Currency-specific payment methods are left out at creation time, they
        are added back by update_currency once the currency is known.

        Raises:
            StripeServiceError: If Stripe rejects the request.
        """
        amount = to_minor_units(price, quantity)
        params = {
            "amount": amount,
            "currency": currency,
            "description": product_name,
            "metadata": correlation_metadata(campaign_id, product_id, quantity),
            "payment_method_types": self._settings.initial_payment_methods(),
        }
        try:
            intent = as_dict(await self._client.payment_intents.create_async(params=params))
        except stripe.StripeError as e:
            logger.error("PaymentIntent creation failed: %s (code: %s)", e, getattr(e, "code", None))
            raise StripeServiceError.from_stripe(e) from e

        logger.info("Created PaymentIntent %s for %d %s", intent["id"], amount, currency)
        return intent

    async def _update(self, payment_intent_id: str, params: dict):
        try:
            intent = as_dict(
                await self._client.payment_intents.update_async(payment_intent_id, params=params)
            )
        except stripe.StripeError as e:
            logger.error(
                "PaymentIntent %s update failed: %s (code: %s)",
                payment_intent_id,
                e,
                getattr(e, "code", None),
            )
            raise StripeServiceError.from_stripe(e) from e

        logger.info("Updated PaymentIntent %s (%s)", payment_intent_id, ", ".join(sorted(params)))
        return intent

    async def update_quantity(
        self,
        payment_intent_id: str,
        *,
        price: Decimal,
        quantity: int,
        campaign_id: str,
        product_id: str,
    ):
        return await self._update(
            payment_intent_id,
            {
                "amount": to_minor_units(price, quantity),
                "metadata": correlation_metadata(campaign_id, product_id, quantity),
            },
        )

    async def update_shipping(
        self, payment_intent_id: str, *, items: list[BasketItem], shipping_option_id: str
    ):
        """Reprice the basket from the live catalog and add the shipping cost.

        Raises:
            CatalogLookupError: If an item or the shipping option is unknown.
            StripeServiceError: If Stripe rejects a call.
        """
        products = await self._catalog.list_products()
        amount = calculate_payment_amount(items, products)
        shipping_cost = self._catalog.shipping_cost(shipping_option_id)
        if shipping_cost is None:
            raise CatalogLookupError(f"Unknown shipping option '{shipping_option_id}'")
        return await self._update(payment_intent_id, {"amount": amount + shipping_cost})

    async def update_currency(self, payment_intent_id: str, *, currency: str, payment_methods: list[str]):
        return await self._update(
            payment_intent_id,
            {"currency": currency, "payment_method_types": payment_methods},
        )

    async def retrieve(self, payment_intent_id: str):
        try:
            return as_dict(await self._client.payment_intents.retrieve_async(payment_intent_id))
        except stripe.StripeError as e:
            logger.error("PaymentIntent %s retrieval failed: %s", payment_intent_id, e)
            raise StripeServiceError.from_stripe(e) from e

    async def retrieve_status(self, payment_intent_id: str) -> dict:
        intent = await self.retrieve(payment_intent_id)
        payload = {"status": intent["status"]}
        last_error = intent.get("last_payment_error")
        if last_error:
            payload["last_payment_error"] = last_error.get("message")
        return payload

    async def confirm_with_source(self, payment_intent_id: str, source_id: str):
        """Confirm a PaymentIntent that is waiting for a payment method.

        The status check and the confirm are two separate Stripe calls, so two
        concurrent deliveries can both pass the check; Stripe rejects the
        second confirm in that case.

        Raises:
            InvalidIntentStateError: If the intent no longer requires a payment method.
            StripeServiceError: If either Stripe call fails.
        """
        intent = await self.retrieve(payment_intent_id)
        if intent["status"] != REQUIRES_PAYMENT_METHOD:
            raise InvalidIntentStateError(payment_intent_id, intent["status"], REQUIRES_PAYMENT_METHOD)

        try:
            confirmed = as_dict(
                await self._client.payment_intents.confirm_async(
                    payment_intent_id, params={"source": source_id}
                )
            )
        except stripe.StripeError as e:
            logger.error(
                "Confirming PaymentIntent %s with source %s failed: %s",
                payment_intent_id,
                source_id,
                e,
            )
            raise StripeServiceError.from_stripe(e) from e

        logger.info("Confirmed PaymentIntent %s with source %s", payment_intent_id, source_id)
        return confirmed

    async def cancel(self, payment_intent_id: str):
        try:
            canceled = as_dict(await self._client.payment_intents.cancel_async(payment_intent_id))
        except stripe.StripeError as e:
            logger.error("Canceling PaymentIntent %s failed: %s", payment_intent_id, e)
            raise StripeServiceError.from_stripe(e) from e

        logger.info("Canceled PaymentIntent %s", payment_intent_id)
        return canceled


class CheckoutService:
    def __init__(self, client: StripeClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def create_session(
        self,
        *,
        currency: str,
        price: Decimal,
        quantity: int,
        product_name: str,
        campaign_id: str,
        product_id: str,
        image_url: str | None = None,
        product_index: int | str | None = None,
    ) -> str:
        """Create a hosted Checkout Session and return its redirect URL."""
        metadata = correlation_metadata(campaign_id, product_id, quantity)
        product_data = {"name": product_name, "metadata": metadata}
        if image_url:
            product_data["images"] = [image_url]

        domain = self._settings.checkout_domain
        params = {
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": product_data,
                        "unit_amount": to_minor_units(price),
                    },
                    "quantity": quantity,
                }
            ],
            "shipping_address_collection": {
                "allowed_countries": list(self._settings.checkout_allowed_countries),
            },
            "metadata": metadata,
            "mode": "payment",
            "success_url": f"{domain}/thank-you",
            "cancel_url": f"{domain}/campaign/{campaign_id}/product/{product_index}",
        }
        try:
            session = as_dict(await self._client.checkout.sessions.create_async(params=params))
        except stripe.StripeError as e:
            logger.error("Checkout session creation failed: %s (code: %s)", e, getattr(e, "code", None))
            raise StripeServiceError.from_stripe(e) from e

        logger.info("Created checkout session %s for campaign %s", session["id"], campaign_id)
        return session["url"]
