# cubecart/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import close_pool
from .error_handlers import register_error_handlers
from .observability import setup_logging
from .routes import auth, orders, payments
from .security.tokens import get_token_service
from .services.payments import configure_stripe
from .settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_format)
    # fail at startup, not on the first request, if the signing secret is missing
    get_token_service()
    configure_stripe()
    logger.info("CubeCart API started")
    yield
    await close_pool()
    logger.info("CubeCart API shutting down")


app = FastAPI(title="CubeCart Checkout API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth.router)
app.include_router(payments.router)
app.include_router(orders.router)


@app.get("/")
def root():
    return {"message": "CubeCart API is running"}
