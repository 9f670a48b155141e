import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from careerhub.api import admin, credits, generation, health
from careerhub.core.config import settings, validate_config
from careerhub.core.database import create_all_tables
from careerhub.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from careerhub.core.logging import configure_logging
from careerhub.core.middleware.metrics import MetricsMiddleware
from careerhub.core.middleware.request_id import RequestIdMiddleware
from careerhub.core.middleware.tracing import TracingMiddleware
from careerhub.core.tracing import setup_tracing
from careerhub.features.credits.catalog import seed_catalog

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_config(strict=settings.CONFIG_STRICT)
setup_tracing(enabled=settings.OTEL_ENABLED, exporter_name=settings.OTEL_EXPORTER)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("careerhub")
    logger.info("Starting CareerHub backend...")
    app.state.startup_time = time.time()
    create_all_tables()
    seed_catalog()
    try:
        yield
    finally:
        logger.info("Stopping CareerHub backend...")


app = FastAPI(title="CareerHub - Generation API", lifespan=lifespan)

# Last added runs outermost; request ids must be bound before tracing reads them
app.add_middleware(MetricsMiddleware)
app.add_middleware(TracingMiddleware)
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(generation.router)
app.include_router(credits.router)
app.include_router(admin.router)
app.include_router(health.router)
