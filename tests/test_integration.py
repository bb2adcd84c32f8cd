import itertools

import pytest
import stripe


class FakePaymentIntents:
    """In-memory stand-in for StripeClient.payment_intents keeping intent state."""

    def __init__(self):
        self.intents = {}
        self.calls = []
        self._ids = itertools.count(1)

    async def create_async(self, params):
        self.calls.append(("create", None))
        intent_id = f"pi_fake_{next(self._ids)}"
        self.intents[intent_id] = {
            "id": intent_id,
            "object": "payment_intent",
            "status": "requires_payment_method",
            "last_payment_error": None,
            **params,
        }
        return dict(self.intents[intent_id])

    async def update_async(self, intent_id, params):
        self.calls.append(("update", intent_id))
        self.intents[intent_id].update(params)
        return dict(self.intents[intent_id])

    async def retrieve_async(self, intent_id):
        self.calls.append(("retrieve", intent_id))
        return dict(self.intents[intent_id])

    async def confirm_async(self, intent_id, params):
        self.calls.append(("confirm", intent_id))
        if self.intents[intent_id]["status"] != "requires_payment_method":
            raise stripe.InvalidRequestError("PaymentIntent cannot be confirmed", "source")
        self.intents[intent_id].update(status="succeeded", source=params["source"])
        return dict(self.intents[intent_id])

    async def cancel_async(self, intent_id):
        self.calls.append(("cancel", intent_id))
        self.intents[intent_id]["status"] = "canceled"
        return dict(self.intents[intent_id])

    def mutations(self):
        return [call for call in self.calls if call[0] != "retrieve"]


@pytest.fixture
def fake_intents(stripe_client):
    fake = FakePaymentIntents()
    stripe_client.payment_intents = fake
    return fake


def _create(client, quantity=2):
    response = client.post(
        "/payment_intents",
        json={
            "currency": "eur",
            "price": 10.00,
            "quantity": quantity,
            "productName": "T-shirt",
            "campaignId": "cmp_1",
            "productId": "prod_shirt",
        },
    )
    assert response.status_code == 200
    return response.json()["paymentIntent"]


def _source_event(status, intent_id):
    return {
        "id": f"evt_{status}",
        "type": f"source.{status}",
        "data": {
            "object": {
                "id": "src_ideal_1",
                "object": "source",
                "status": status,
                "metadata": {"paymentIntent": intent_id},
            }
        },
    }


def test_source_payment_lifecycle(client, fake_intents):
    """
    1. Create a PaymentIntent
    2. Update its quantity
    3. Chargeable source confirms it
    4. Replaying the same delivery is refused and does not confirm again
    """
    intent = _create(client)
    assert intent["amount"] == 2000
    assert intent["metadata"]["quantity"] == "2"

    response = client.post(
        f"/payment_intents/{intent['id']}/update_quantity",
        json={"price": 10, "quantity": 3, "campaignId": "cmp_1", "productId": "prod_shirt"},
    )
    assert response.json()["paymentIntent"]["amount"] == 3000

    # Signing is disabled in these settings, the body is parsed directly.
    event = _source_event("chargeable", intent["id"])
    first = client.post("/webhook", json=event)
    assert first.status_code == 200

    status = client.get(f"/payment_intents/{intent['id']}/status")
    assert status.json() == {"paymentIntent": {"status": "succeeded"}}

    replay = client.post("/webhook", json=event)
    assert replay.status_code == 403
    assert [c for c in fake_intents.mutations() if c[0] == "confirm"] == [("confirm", intent["id"])]


def test_failed_source_cancels_only_its_intent(client, fake_intents):
    kept = _create(client)
    doomed = _create(client, quantity=1)

    response = client.post("/webhook", json=_source_event("failed", doomed["id"]))

    assert response.status_code == 200
    assert fake_intents.intents[doomed["id"]]["status"] == "canceled"
    assert fake_intents.intents[kept["id"]]["status"] == "requires_payment_method"
    assert [c for c in fake_intents.mutations() if c[0] == "cancel"] == [("cancel", doomed["id"])]
