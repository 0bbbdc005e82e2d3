"""Webhook HTTP surface and process entrypoint.

One process serves the payment/mapping webhooks and runs the Discord client
on the same event loop. Both endpoints require the `x-shared-secret` header.
"""

import asyncio
import contextlib
import hmac
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Header, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from passdrop.common.config import settings
from passdrop.common.logging import configure_logging, log_context, logger
from passdrop.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from passdrop.common.startup import log_startup_config
from passdrop.common.tracing import instrument_app, setup_tracing
from passdrop.context import AppContext, create_context
from passdrop.services.fulfillment import PaymentEvent


def shared_secret_ok(value: str | None) -> bool:
    """Constant-time comparison against the configured shared secret."""

    if not value:
        return False
    return hmac.compare_digest(value.encode("utf-8"), settings.shared_secret.encode("utf-8"))


async def _json_object(request: Request) -> dict | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _log_bot_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("discord client stopped: %s", exc)


def create_app(context: AppContext) -> FastAPI:
    """Build the FastAPI app around an assembled context."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Load the record, run the Discord client, flush on shutdown."""

        await context.cache.load()
        bot_task = None
        if context.bot is not None:
            bot_task = asyncio.create_task(context.bot.start(settings.discord_token))
            bot_task.add_done_callback(_log_bot_exit)
        yield
        if context.bot is not None:
            await context.bot.close()
        if bot_task is not None and not bot_task.done():
            bot_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await bot_task
        await context.close()

    app = FastAPI(title="passdrop", lifespan=lifespan)
    app.state.context = context

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            with log_context(trace_id=request.headers.get("x-request-id") or uuid4()):
                response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.post("/payment", response_class=PlainTextResponse)
    @app.post("/api/payment", response_class=PlainTextResponse)
    async def payment(request: Request, x_shared_secret: str | None = Header(default=None)):
        """Deliver the purchased product for one payment receipt."""

        if not shared_secret_ok(x_shared_secret):
            return PlainTextResponse("Unauthorized", status_code=401)
        body = await _json_object(request)
        if body is None:
            return PlainTextResponse("Invalid payload", status_code=400)
        try:
            event = PaymentEvent.model_validate(body)
        except ValidationError:
            return PlainTextResponse("Invalid payload", status_code=400)

        result = await context.fulfillment.handle_payment(event)
        return PlainTextResponse(result.value)

    @app.post("/map")
    async def map_identity(request: Request, x_shared_secret: str | None = Header(default=None)):
        """Create or overwrite a Roblox id -> Discord id mapping."""

        if not shared_secret_ok(x_shared_secret):
            return PlainTextResponse("Unauthorized", status_code=401)
        body = await _json_object(request) or {}
        roblox_id = body.get("robloxId")
        discord_id = body.get("discordId")
        if not roblox_id or not discord_id:
            return PlainTextResponse("Missing fields", status_code=400)
        context.fulfillment.link(roblox_id, discord_id)
        return {"ok": True}

    @app.get("/health")
    def health():
        """Liveness check with bot connection and persistence status."""

        return {
            "ok": True,
            "bot_connected": context.gateway.is_ready(),
            "cache_stale": context.cache.is_stale,
            "pending_flush": context.cache.pending_flush,
        }

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    return app


def run() -> None:
    """Console entrypoint: configure ambient stack, then serve."""

    configure_logging()
    setup_tracing(settings.service_name)
    log_startup_config(
        settings.service_name,
        [
            "SERVICE_NAME",
            "PORT",
            "DISCORD_TOKEN",
            "SHARED_SECRET",
            "GUILD_ID",
            "COMMAND_CHANNEL_ID",
            "PROOF_CHANNEL_ID",
            "STORE_URL",
            "STORE_API_KEY",
            "CATALOG_PATH",
        ],
    )
    app = create_app(create_context(settings))
    instrument_app(app)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
