import stripe
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.log import get_logger

logger = get_logger(__name__)


class StripeServiceError(Exception):
    """Raised when a Stripe API call fails."""

    def __init__(self, message: str, stripe_error_code: str | None = None) -> None:
        super().__init__(message)
        self.stripe_error_code = stripe_error_code

    @classmethod
    def from_stripe(cls, error: stripe.StripeError) -> "StripeServiceError":
        return cls(
            error.user_message or str(error),
            stripe_error_code=getattr(error, "code", None),
        )


class CatalogLookupError(LookupError):
    """Raised when a product, price or shipping option cannot be found."""


class InvalidIntentStateError(Exception):
    """Raised when a PaymentIntent is not in the status an operation requires."""

    def __init__(self, payment_intent_id: str, status: str, expected: str) -> None:
        super().__init__(
            f"PaymentIntent {payment_intent_id} has status '{status}', expected '{expected}'"
        )
        self.payment_intent_id = payment_intent_id
        self.status = status
        self.expected = expected


async def _stripe_error_handler(request: Request, exc: StripeServiceError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def _lookup_error_handler(request: Request, exc: CatalogLookupError) -> JSONResponse:
    logger.warning("Catalog lookup failed on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=404, content={"error": str(exc)})


async def _invalid_state_handler(request: Request, exc: InvalidIntentStateError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StripeServiceError, _stripe_error_handler)
    app.add_exception_handler(CatalogLookupError, _lookup_error_handler)
    app.add_exception_handler(InvalidIntentStateError, _invalid_state_handler)
