import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from brainjourney.api import health, progression
from brainjourney.core.config import settings, validate_config
from brainjourney.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from brainjourney.core.logging import configure_logging
from brainjourney.core.middleware.request_id import RequestIdMiddleware

configure_logging(settings.ENV, level=settings.LOG_LEVEL, fmt=settings.LOG_FORMAT)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("brainjourney")
    logger.info("Starting Brain Journey backend...")
    try:
        yield
    finally:
        logging.getLogger("brainjourney").info("Stopping Brain Journey backend...")


app = FastAPI(title="Brain Journey", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(progression.router)
app.include_router(health.root_router)
