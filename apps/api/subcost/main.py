from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from subcost.api.errors import register_exception_handlers
from subcost.api.routes import router as api_router
from subcost.business.subscription import models as subscription_models  # noqa: F401
from subcost.core.config import get_settings
from subcost.core.database import Base, engine
from subcost.logging import configure_logging
from subcost.middleware.correlation_id import CorrelationIdMiddleware
from subcost.middleware.request_logging import RequestLoggingMiddleware
from subcost.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("subcost.lifecycle")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.auto_create_schema:
        Base.metadata.create_all(bind=engine)
        logger.info("schema.created", extra={"action": "create_all"})
    logger.info("service.started", extra={"strategy": settings.sum_strategy})
    yield
    logger.info("service.stopped")


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
register_exception_handlers(app)
app.include_router(api_router)

if settings.otel_enabled:
    setup_otel("subscriptions", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
