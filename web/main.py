"""FastAPI application exposing the Telegram webhook, admin API and probes."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Response, status
from fastapi.responses import JSONResponse

from core.env import env_int, env_str
from core.logging import get_logger, setup_logging
from core.settings import BotSettings, load_settings
from services.bot_commands import BotCommandRouter
from services.lookup_context import LookupContext
from services.lookup_errors import TelegramApiError
from services.telegram_client import TelegramClient
from web import routers

try:  # pragma: no cover - optional dependency
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
except ImportError:  # pragma: no cover
    CONTENT_TYPE_LATEST = "text/plain"
    generate_latest = None

logger = get_logger(__name__)


def _build_telegram_client(settings: BotSettings) -> Optional[TelegramClient]:
    if not settings.bot_token:
        logger.warning("BOT_TOKEN is not set; the Telegram webhook is disabled.")
        return None
    return TelegramClient(settings.bot_token, base_url=settings.telegram_api_base_url)


def create_app(
    settings: Optional[BotSettings] = None,
    *,
    lookup_http_client: Optional[httpx.AsyncClient] = None,
    telegram_client: Optional[TelegramClient] = None,
) -> FastAPI:
    """Wire the lookup services onto a new application instance."""

    settings = settings or load_settings()
    context = LookupContext.from_settings(settings, http_client=lookup_http_client)
    telegram = telegram_client or _build_telegram_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context.store.initialize()
        if telegram is not None and settings.webhook_url:
            try:
                await telegram.set_webhook(settings.webhook_url.rstrip("/") + (settings.webhook_path or ""))
                logger.info("Webhook registered with Telegram.")
            except TelegramApiError as exc:
                logger.error("Failed to register webhook: %s", exc)
        yield
        if telegram is not None:
            await telegram.aclose()

    app = FastAPI(
        title="Mobile Lookup Bot API",
        description="Telegram webhook and subscription admin API for the mobile lookup bot.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.lookup_context = context
    app.state.bot_router = BotCommandRouter(context, telegram) if telegram is not None else None

    @app.get("/", summary="Health Check", tags=["Default"])
    def health_check():
        """Report that the process is up."""
        return {"status": "ok", "message": "Mobile lookup bot is running."}

    @app.get("/healthz", include_in_schema=False)
    def liveness_probe():
        """Lightweight probe that fails when the user store cannot be read."""
        store_ok, store_error = routers.health.ping_store(context)
        payload = {"status": "ok" if store_ok else "unhealthy", "store": {"ok": store_ok}}
        if store_error:
            payload["store"]["error"] = store_error
        status_code = status.HTTP_200_OK if store_ok else status.HTTP_503_SERVICE_UNAVAILABLE
        return JSONResponse(status_code=status_code, content=payload)

    @app.get("/metrics", include_in_schema=False)
    def prometheus_metrics():
        """Expose Prometheus metrics."""
        if generate_latest is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={"code": "metrics.unavailable", "message": "prometheus_client is not installed"},
            )
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(routers.telegram.router)
    app.include_router(routers.admin.router, prefix="/api/v1")
    app.include_router(routers.health.router, prefix="/api/v1")
    return app


def build_default_app() -> FastAPI:
    setup_logging()
    return create_app()


def main() -> None:
    uvicorn.run(
        "web.main:build_default_app",
        factory=True,
        host=env_str("HOST", "0.0.0.0") or "0.0.0.0",
        port=env_int("PORT", 8000, minimum=1),
        log_config=None,
    )


__all__ = ["build_default_app", "create_app", "main"]


if __name__ == "__main__":
    main()
