"""
FastAPI application for the triage service.

Every response carries a `success` flag; failures become
`{"success": false, "message": ...}` without leaking tracebacks.
"""

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from adapters.http.routes import TriageServices, router, settings_router
from adapters.notifications.twilio_sms import make_twilio_channel_factory
from adapters.storage.memory import InMemoryTriageStore
from core.config import AppConfig, get_config
from core.domain.errors import (
    AlertNotFoundError,
    ChannelError,
    ConfigurationError,
    DraftError,
    TriageError,
)
from core.logging_config import configure_logging
from core.services.aggregation import AlertSetBuilder
from core.services.care_prompts import CarePromptDrafter, DraftCache
from core.services.dispatcher import AlertDispatcher
from core.services.ports import ChannelFactory, TelemetryStore

logger = structlog.get_logger(__name__)

_ERROR_STATUS: dict[type[TriageError], int] = {
    AlertNotFoundError: 500,
    ConfigurationError: 500,
    ChannelError: 500,
    DraftError: 502,
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def build_services(
    config: AppConfig,
    store: TelemetryStore,
    channel_factory: ChannelFactory | None = None,
    drafter: CarePromptDrafter | None = None,
) -> TriageServices:
    """Wire the triage pipeline around a record store and a channel factory.

    Without an explicit factory, alerts go out over Twilio SMS with the HTTP
    timeout set to the configured send timeout.
    """
    if channel_factory is None:
        channel_factory = make_twilio_channel_factory(config.notifications.send_timeout_seconds)

    builder = AlertSetBuilder(store)
    dispatcher = AlertDispatcher(
        builder=builder,
        store=store,
        channel_factory=channel_factory,
        config=config.dispatcher_config(),
    )

    if drafter is None and config.ai_provider.enabled:
        cache = DraftCache(
            max_entries=config.cache.draft_cache_size,
            ttl_seconds=config.cache.draft_cache_ttl_seconds,
        )
        drafter = CarePromptDrafter(config.care_prompt_config(), cache)

    return TriageServices(
        store=store, builder=builder, dispatcher=dispatcher, api=config.api, drafter=drafter
    )


def create_app(services: TriageServices) -> FastAPI:
    app = FastAPI(title="Patient Triage Alerts", version="0.1.0")
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TriageError)
    async def triage_error_handler(request: Request, exc: TriageError) -> JSONResponse:
        status_code = next(
            (code for kind, code in _ERROR_STATUS.items() if isinstance(exc, kind)), 500
        )
        logger.warning(
            "request_failed",
            path=request.url.path,
            status_code=status_code,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return _error(status_code, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        return _error(400, f"Invalid request: {fields}")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_request_error", path=request.url.path, error=str(exc))
        return _error(500, "Internal server error")

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(router)
    app.include_router(settings_router)
    return app


def create_default_app() -> FastAPI:
    """App factory for uvicorn: env config, in-memory store, Twilio channel."""
    config = get_config()
    configure_logging(config.logging)
    store = InMemoryTriageStore.from_config(config.notifications)
    if not config.api.api_keys:
        logger.warning("no_api_keys_configured", hint="set API_KEYS; all triage routes will 401")
    return create_app(build_services(config, store))


def main() -> None:
    config = get_config()
    uvicorn.run(
        "adapters.http.app:create_default_app",
        factory=True,
        host=config.api.host,
        port=config.api.port,
        reload=config.api.reload,
    )


if __name__ == "__main__":
    main()
