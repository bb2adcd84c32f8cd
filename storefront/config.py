import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

DEFAULT_PAYMENT_METHODS = (
    "ach_credit_transfer",
    "alipay",
    "bancontact",
    "card",
    "eps",
    "ideal",
    "giropay",
    "multibanco",
    "sepa_debit",
    "sofort",
    "wechat",
    "au_becs_debit",
)

# Methods that only validate once the intent carries a matching currency.
CURRENCY_SPECIFIC_METHODS = frozenset({"au_becs_debit"})

DEFAULT_STATIC_DIR = Path(__file__).resolve().parent / "static"


class ShippingOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    detail: str
    amount: int


SHIPPING_OPTIONS = (
    ShippingOption(id="free", label="Free Shipping", detail="Ships in 5-7 days", amount=0),
    ShippingOption(id="express", label="Express Shipping", detail="Ships within 24 hours", amount=500),
)


class Settings(BaseModel):
    """Immutable runtime configuration, built once and injected into services."""

    model_config = ConfigDict(frozen=True)

    stripe_secret_key: str
    stripe_publishable_key: str = ""
    stripe_webhook_secret: str | None = None
    stripe_api_version: str = "2019-03-14"
    stripe_country: str = "US"
    country: str = "US"
    currency: str = "eur"
    payment_methods: tuple[str, ...] = DEFAULT_PAYMENT_METHODS
    shipping_options: tuple[ShippingOption, ...] = SHIPPING_OPTIONS
    checkout_domain: str = "http://localhost:8000"
    checkout_allowed_countries: tuple[str, ...] = ("US",)
    static_dir: Path = DEFAULT_STATIC_DIR
    log_level: str = "INFO"

    def initial_payment_methods(self) -> list[str]:
        return [m for m in self.payment_methods if m not in CURRENCY_SPECIFIC_METHODS]

    def public_config(self) -> dict:
        return {
            "stripePublishableKey": self.stripe_publishable_key,
            "stripeCountry": self.stripe_country,
            "country": self.country,
            "currency": self.currency,
            "paymentMethods": list(self.payment_methods),
            "shippingOptions": [option.model_dump() for option in self.shipping_options],
        }


def _split(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if not value:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_settings() -> Settings:
    secret_key = os.getenv("STRIPE_SECRET_KEY")
    if not secret_key:
        raise RuntimeError("STRIPE_SECRET_KEY is not set. Check your .env file.")

    return Settings(
        stripe_secret_key=secret_key,
        stripe_publishable_key=os.getenv("STRIPE_PUBLISHABLE_KEY", ""),
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
        stripe_api_version=os.getenv("STRIPE_API_VERSION", "2019-03-14"),
        stripe_country=os.getenv("STRIPE_ACCOUNT_COUNTRY", "US"),
        country=os.getenv("COUNTRY", "US"),
        currency=os.getenv("CURRENCY", "eur"),
        payment_methods=_split(os.getenv("PAYMENT_METHODS"), DEFAULT_PAYMENT_METHODS),
        checkout_domain=os.getenv("CHECKOUT_DOMAIN", "http://localhost:8000").rstrip("/"),
        checkout_allowed_countries=_split(os.getenv("CHECKOUT_ALLOWED_COUNTRIES"), ("US",)),
        static_dir=Path(os.getenv("STATIC_DIR") or DEFAULT_STATIC_DIR),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
