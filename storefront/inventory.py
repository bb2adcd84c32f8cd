"""Product catalog backed by Stripe Products and Prices.

Prices are always read from Stripe at request time so a basket total never
uses a stale price. Lookups that can miss return None; the callers decide
whether a miss is fatal.
"""

from collections.abc import Iterable, Sequence

import stripe
from pydantic import BaseModel, Field
from stripe import StripeClient

from storefront.config import Settings
from storefront.errors import CatalogLookupError, StripeServiceError
from storefront.log import get_logger
from storefront.stripe_objects import as_dict

logger = get_logger(__name__)

PRODUCT_LIST_LIMIT = 10


class Price(BaseModel):
    id: str
    unit_amount: int
    currency: str


class Product(BaseModel):
    id: str
    name: str
    description: str | None = None
    images: list[str] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)
    prices: list[Price] = Field(default_factory=list)

    @classmethod
    def from_stripe(cls, product, prices: Iterable) -> "Product":
        return cls(
            id=product["id"],
            name=product["name"],
            description=product.get("description"),
            images=list(product.get("images") or []),
            metadata=dict(product.get("metadata") or {}),
            prices=[
                Price(id=p["id"], unit_amount=p["unit_amount"], currency=p["currency"])
                for p in prices
                if p.get("unit_amount") is not None
            ],
        )


class BasketItem(BaseModel):
    parent: str  # price id
    quantity: int = Field(ge=1)


def find_price(products: Sequence[Product], price_id: str) -> Price | None:
    for product in products:
        for price in product.prices:
            if price.id == price_id:
                return price
    return None


def calculate_payment_amount(items: Sequence[BasketItem], products: Sequence[Product]) -> int:
    """Total of price x quantity over the basket, in minor currency units.

    Raises:
        CatalogLookupError: If any item references a price not in the catalog.
    """
    total = 0
    for item in items:
        price = find_price(products, item.parent)
        if price is None:
            raise CatalogLookupError(f"No price found for item '{item.parent}'")
        total += price.unit_amount * item.quantity
    return total


class Catalog:
    def __init__(self, client: StripeClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def _prices_for(self, product_id: str) -> list:
        prices = await self._client.prices.list_async(
            params={"product": product_id, "active": True}
        )
        return [as_dict(p) for p in as_dict(prices)["data"]]

    async def list_products(self) -> list[Product]:
        try:
            listing = await self._client.products.list_async(
                params={"active": True, "limit": PRODUCT_LIST_LIMIT}
            )
            products = []
            for product in as_dict(listing)["data"]:
                product = as_dict(product)
                products.append(
                    Product.from_stripe(product, await self._prices_for(product["id"]))
                )
        except stripe.StripeError as e:
            logger.error("Failed to list products: %s (code: %s)", e, getattr(e, "code", None))
            raise StripeServiceError.from_stripe(e) from e
        return products

    async def retrieve_product(self, product_id: str) -> Product:
        try:
            product = as_dict(await self._client.products.retrieve_async(product_id))
            prices = await self._prices_for(product_id)
        except stripe.InvalidRequestError as e:
            if getattr(e, "code", None) == "resource_missing":
                raise CatalogLookupError(f"Product '{product_id}' not found") from e
            raise StripeServiceError.from_stripe(e) from e
        except stripe.StripeError as e:
            logger.error("Failed to retrieve product %s: %s", product_id, e)
            raise StripeServiceError.from_stripe(e) from e
        return Product.from_stripe(product, prices)

    def shipping_cost(self, option_id: str) -> int | None:
        for option in self._settings.shipping_options:
            if option.id == option_id:
                return option.amount
        return None
