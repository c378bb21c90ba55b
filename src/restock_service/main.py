"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from restock_service import __version__
from restock_service.api.v1.router import api_router
from restock_service.config import get_settings
from restock_service.exceptions import AuthenticationError, StorageError, ValidationError
from restock_service.infrastructure.catalog import ShopifyCatalogClient
from restock_service.infrastructure.database import Database
from restock_service.infrastructure.messaging import WhatsAppSender
from restock_service.infrastructure.redis import CacheService, connect_redis
from restock_service.logging_setup import configure_logging
from restock_service.middleware.request_context import RequestContextMiddleware
from restock_service.services.notifier import CeleryLimitNotifier

configure_logging(get_settings())

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info("Starting restock relay", app_env=settings.app_env, debug=settings.debug)

    database = Database.from_settings(settings)
    cache = CacheService(await connect_redis(settings.redis_url))
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.catalog_timeout_seconds))

    app.state.database = database
    app.state.cache = cache
    app.state.catalog = ShopifyCatalogClient(http_client, settings.shopify_api_version)
    app.state.sender = WhatsAppSender(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.whatsapp_sender,
        timeout_seconds=settings.send_timeout_seconds,
    )
    app.state.notifier = CeleryLimitNotifier()

    if not app.state.sender.configured:
        logger.warning("WhatsApp sender not configured, restock sends will fail")
    if not await database.ping():
        logger.warning("Database not reachable at startup")

    yield

    await http_client.aclose()
    await cache.close()
    await database.dispose()
    logger.info("Shutting down restock relay")


def _error_body(message: str) -> dict[str, object]:
    return {"success": False, "message": message}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body(str(exc)))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = [".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()]
        message = "invalid or missing fields: " + ", ".join(f for f in fields if f)
        return JSONResponse(status_code=400, content=_error_body(message))

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        logger.warning("Request rejected", reason=str(exc))
        return JSONResponse(status_code=401, content=_error_body("unauthorized"))

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        return JSONResponse(status_code=500, content=_error_body("storage unavailable"))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Restock Relay API",
        description="Back-in-stock WhatsApp notifications for storefront shoppers",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "restock_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()
