"""FastAPI dependency providers.

Settings and the Stripe client are built once per process; services are
cheap wrappers and are built per request. Tests swap the client through
app.dependency_overrides[get_stripe_client].
"""

from functools import lru_cache

from fastapi import Depends
from stripe import StripeClient

from storefront.config import Settings, get_settings
from storefront.inventory import Catalog
from storefront.stripe_service import CheckoutService, PaymentIntentService, new_stripe_client
from storefront.webhook import WebhookDispatcher


@lru_cache(maxsize=1)
def _cached_client(settings: Settings) -> StripeClient:
    return new_stripe_client(settings)


def get_stripe_client(settings: Settings = Depends(get_settings)) -> StripeClient:
    return _cached_client(settings)


def get_catalog(
    client: StripeClient = Depends(get_stripe_client),
    settings: Settings = Depends(get_settings),
) -> Catalog:
    return Catalog(client, settings)


def get_payment_service(
    client: StripeClient = Depends(get_stripe_client),
    settings: Settings = Depends(get_settings),
    catalog: Catalog = Depends(get_catalog),
) -> PaymentIntentService:
    return PaymentIntentService(client, settings, catalog)


def get_checkout_service(
    client: StripeClient = Depends(get_stripe_client),
    settings: Settings = Depends(get_settings),
) -> CheckoutService:
    return CheckoutService(client, settings)


def get_webhook_dispatcher(
    settings: Settings = Depends(get_settings),
    payments: PaymentIntentService = Depends(get_payment_service),
) -> WebhookDispatcher:
    return WebhookDispatcher(settings, payments)


def reset_dependencies() -> None:
    get_settings.cache_clear()
    _cached_client.cache_clear()
