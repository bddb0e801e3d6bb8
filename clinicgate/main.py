import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from clinicgate.core.config import settings, validate_config
from clinicgate.core.logging import configure_logging
from clinicgate.core.middleware.request_id import RequestIdMiddleware
from clinicgate.core.errors import (
    AppError,
    SubscriptionRequiredError,
    app_error_handler,
    http_error_handler,
    subscription_required_handler,
    unhandled_exception_handler,
)
from clinicgate.api import external, health, sections, subscription


configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("clinicgate")
    logger.info("Starting clinicgate...")
    try:
        yield
    finally:
        logging.getLogger("clinicgate").info("Stopping clinicgate...")


app = FastAPI(title="clinicgate - entitlement engine", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(SubscriptionRequiredError, subscription_required_handler)
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(health.router)
app.include_router(subscription.router)
app.include_router(sections.router)
app.include_router(external.router)
