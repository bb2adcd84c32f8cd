import hashlib
import hmac
import os
import time

# Settings are read from the environment on startup; keep tests off any real .env keys.
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")

import pytest
import stripe
from fastapi.testclient import TestClient

from storefront.config import Settings, get_settings
from storefront.dependencies import get_stripe_client, reset_dependencies
from storefront.main import app as fastapi_app

TEST_WEBHOOK_SECRET = "whsec_test_secret123"


def make_stripe_client(mocker):
    """MagicMock standing in for StripeClient, with awaitable request methods."""
    client = mocker.MagicMock()
    for name in ("create_async", "update_async", "retrieve_async", "confirm_async", "cancel_async"):
        setattr(client.payment_intents, name, mocker.AsyncMock(return_value=make_payment_intent()))
    client.checkout.sessions.create_async = mocker.AsyncMock()
    client.products.list_async = mocker.AsyncMock(return_value={"data": []})
    client.products.retrieve_async = mocker.AsyncMock()
    client.prices.list_async = mocker.AsyncMock(return_value={"data": []})
    return client


def make_payment_intent(id="pi_123", status="requires_payment_method", **fields):
    intent = {
        "id": id,
        "object": "payment_intent",
        "amount": 2000,
        "currency": "usd",
        "status": status,
        "metadata": {},
        "last_payment_error": None,
    }
    intent.update(fields)
    return intent


def as_stripe_object(values, api_key="sk_test_123"):
    """Wrap values the way StripeClient returns them, request options included."""
    return stripe.StripeObject.construct_from(values, api_key)


def sign_payload(payload: bytes, secret=TEST_WEBHOOK_SECRET, timestamp=None) -> str:
    """Build a Stripe-Signature header for payload, as Stripe computes it."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode()}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture(autouse=True)
def reset_state():
    reset_dependencies()
    yield
    reset_dependencies()


@pytest.fixture
def settings():
    return Settings(
        stripe_secret_key="sk_test_123",
        stripe_publishable_key="pk_test_123",
        checkout_domain="https://shop.example.com",
    )


@pytest.fixture
def stripe_client(mocker):
    return make_stripe_client(mocker)


@pytest.fixture
def client(settings, stripe_client):
    fastapi_app.dependency_overrides[get_settings] = lambda: settings
    fastapi_app.dependency_overrides[get_stripe_client] = lambda: stripe_client
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
