from contextlib import asynccontextmanager

import stripe
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from storefront.config import Settings, get_settings
from storefront.dependencies import get_webhook_dispatcher
from storefront.errors import register_exception_handlers
from storefront.log import CorrelationIdMiddleware, configure_logging, get_logger
from storefront.routes import router
from storefront.webhook import WebhookDispatcher

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().log_level)
    yield


app = FastAPI(title="Storefront Payments", lifespan=lifespan)

# Allow all
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

app.include_router(router)


@app.get("/")
def index(settings: Settings = Depends(get_settings)):
    page = settings.static_dir / "index.html"
    if not page.is_file():
        raise HTTPException(status_code=404, detail="Storefront page not found")
    return FileResponse(page, media_type="text/html")


@app.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
):
    payload = await request.body()

    try:
        event = dispatcher.construct_event(payload, stripe_signature)
    except ValueError:
        logger.warning("Webhook payload could not be parsed")
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("Webhook signature verification failed")
        raise HTTPException(status_code=400, detail="Invalid signature")

    await dispatcher.dispatch(event)
    return {"ok": True}


def run_server(host: str = "0.0.0.0", port: int = 4242, reload: bool = False) -> None:
    import uvicorn

    uvicorn.run("storefront.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run_server()
