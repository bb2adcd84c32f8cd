import asyncio

import pytest
import stripe

from conftest import make_stripe_client
from storefront.errors import CatalogLookupError, StripeServiceError
from storefront.inventory import (
    BasketItem,
    Catalog,
    Price,
    Product,
    calculate_payment_amount,
    find_price,
)

PRODUCTS = [
    Product(
        id="prod_shirt",
        name="T-shirt",
        prices=[
            Price(id="price_shirt_s", unit_amount=1500, currency="usd"),
            Price(id="price_shirt_l", unit_amount=1700, currency="usd"),
        ],
    ),
    Product(id="prod_mug", name="Mug", prices=[Price(id="price_mug", unit_amount=800, currency="usd")]),
]


def test_amount_sums_price_times_quantity():
    items = [
        BasketItem(parent="price_shirt_l", quantity=2),
        BasketItem(parent="price_mug", quantity=3),
    ]

    assert calculate_payment_amount(items, PRODUCTS) == 2 * 1700 + 3 * 800


def test_amount_of_empty_basket_is_zero():
    assert calculate_payment_amount([], PRODUCTS) == 0


def test_amount_raises_for_unknown_price():
    items = [BasketItem(parent="price_mug", quantity=1), BasketItem(parent="price_gone", quantity=1)]

    with pytest.raises(CatalogLookupError, match="price_gone"):
        calculate_payment_amount(items, PRODUCTS)


def test_find_price_returns_none_when_missing():
    assert find_price(PRODUCTS, "price_shirt_s").unit_amount == 1500
    assert find_price(PRODUCTS, "price_gone") is None


def test_shipping_cost(settings, mocker):
    catalog = Catalog(make_stripe_client(mocker), settings)

    assert catalog.shipping_cost("free") == 0
    assert catalog.shipping_cost("express") == 500
    assert catalog.shipping_cost("teleport") is None


def test_list_products_reads_prices_each_time(settings, mocker):
    client = make_stripe_client(mocker)
    client.products.list_async.return_value = {
        "data": [{"id": "prod_mug", "name": "Mug", "images": ["https://cdn.example.com/mug.png"]}]
    }
    client.prices.list_async.return_value = {
        "data": [
            {"id": "price_mug", "unit_amount": 800, "currency": "usd"},
            {"id": "price_custom", "unit_amount": None, "currency": "usd"},
        ]
    }
    catalog = Catalog(client, settings)

    asyncio.run(catalog.list_products())
    products = asyncio.run(catalog.list_products())

    assert products[0].images == ["https://cdn.example.com/mug.png"]
    assert [p.id for p in products[0].prices] == ["price_mug"]
    assert client.prices.list_async.await_count == 2
    client.prices.list_async.assert_awaited_with(params={"product": "prod_mug", "active": True})


def test_list_products_wraps_stripe_errors(settings, mocker):
    client = make_stripe_client(mocker)
    client.products.list_async.side_effect = stripe.RateLimitError("Too many requests")

    with pytest.raises(StripeServiceError, match="Too many requests"):
        asyncio.run(Catalog(client, settings).list_products())


def test_retrieve_missing_product_is_lookup_error(settings, mocker):
    client = make_stripe_client(mocker)
    client.products.retrieve_async.side_effect = stripe.InvalidRequestError(
        "No such product", "id", code="resource_missing"
    )

    with pytest.raises(CatalogLookupError):
        asyncio.run(Catalog(client, settings).retrieve_product("prod_nope"))
