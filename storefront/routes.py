from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.config import Settings, get_settings
from storefront.dependencies import get_catalog, get_checkout_service, get_payment_service
from storefront.inventory import BasketItem, Catalog
from storefront.stripe_service import CheckoutService, PaymentIntentService

router = APIRouter()


class StorefrontRequest(BaseModel):
    # The storefront posts camelCase keys; snake_case is accepted too.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class PaymentIntentRequest(StorefrontRequest):
    currency: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    product_name: str
    campaign_id: str
    product_id: str


class UpdateQuantityRequest(StorefrontRequest):
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    campaign_id: str
    product_id: str


class ShippingOptionRef(StorefrontRequest):
    id: str


class ShippingChangeRequest(StorefrontRequest):
    items: list[BasketItem]
    shipping_option: ShippingOptionRef


class UpdateCurrencyRequest(StorefrontRequest):
    currency: str
    payment_methods: list[str]


class CheckoutSessionRequest(PaymentIntentRequest):
    image_url: str | None = None
    product_index: str | None = None


@router.get("/config")
def get_config(settings: Settings = Depends(get_settings)):
    return settings.public_config()


@router.get("/products")
async def list_products(catalog: Catalog = Depends(get_catalog)):
    return {"data": await catalog.list_products()}


@router.get("/products/{product_id}")
async def retrieve_product(product_id: str, catalog: Catalog = Depends(get_catalog)):
    return await catalog.retrieve_product(product_id)


@router.post("/payment_intents")
async def create_payment_intent(
    request: PaymentIntentRequest,
    payments: PaymentIntentService = Depends(get_payment_service),
):
    intent = await payments.create(
        currency=request.currency,
        price=request.price,
        quantity=request.quantity,
        product_name=request.product_name,
        campaign_id=request.campaign_id,
        product_id=request.product_id,
    )
    return {"paymentIntent": intent}


@router.post("/payment_intents/{payment_intent_id}/update_quantity")
async def update_quantity(
    payment_intent_id: str,
    request: UpdateQuantityRequest,
    payments: PaymentIntentService = Depends(get_payment_service),
):
    intent = await payments.update_quantity(
        payment_intent_id,
        price=request.price,
        quantity=request.quantity,
        campaign_id=request.campaign_id,
        product_id=request.product_id,
    )
    return {"paymentIntent": intent}


@router.post("/payment_intents/{payment_intent_id}/shipping_change")
async def shipping_change(
    payment_intent_id: str,
    request: ShippingChangeRequest,
    payments: PaymentIntentService = Depends(get_payment_service),
):
    intent = await payments.update_shipping(
        payment_intent_id,
        items=request.items,
        shipping_option_id=request.shipping_option.id,
    )
    return {"paymentIntent": intent}


@router.post("/payment_intents/{payment_intent_id}/update_currency")
async def update_currency(
    payment_intent_id: str,
    request: UpdateCurrencyRequest,
    payments: PaymentIntentService = Depends(get_payment_service),
):
    intent = await payments.update_currency(
        payment_intent_id,
        currency=request.currency,
        payment_methods=request.payment_methods,
    )
    return {"paymentIntent": intent}


@router.get("/payment_intents/{payment_intent_id}/status")
async def payment_intent_status(
    payment_intent_id: str,
    payments: PaymentIntentService = Depends(get_payment_service),
):
    return {"paymentIntent": await payments.retrieve_status(payment_intent_id)}


@router.post("/create-checkout-session")
async def create_checkout_session(
    request: CheckoutSessionRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
):
    url = await checkout.create_session(
        currency=request.currency,
        price=request.price,
        quantity=request.quantity,
        product_name=request.product_name,
        campaign_id=request.campaign_id,
        product_id=request.product_id,
        image_url=request.image_url,
        product_index=request.product_index,
    )
    return {"url": url}
