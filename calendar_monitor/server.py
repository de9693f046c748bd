"""aiohttp server exposing the meeting payload over HTTP and a websocket.

``GET /api/meetings`` returns one ``MeetingUpdate``; ``GET /ws`` pushes one
every second until the client goes away.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from aiohttp import WSMsgType, web

from .calendar_service import CalendarService
from .config_manager import MonitorConfig
from .datetime_utils import now_utc
from .google_calendar import GoogleCalendarClient
from .http_client import close_all_clients
from .meeting_cache import MeetingCache
from .models import Meeting, MeetingUpdate

logger = logging.getLogger(__name__)

PUSH_INTERVAL_SECONDS = 1.0

SERVICE_KEY = web.AppKey("service", CalendarService)
REMOTE_CLIENT_KEY = web.AppKey("remote_client", GoogleCalendarClient)
PUSH_INTERVAL_KEY = web.AppKey("push_interval", float)


def build_service(config: MonitorConfig) -> CalendarService:
    """Create the CalendarService described by ``config``."""
    cache = MeetingCache(
        floating_offset=config.floating_offset,
        fetch_timeout=config.fetch_timeout_seconds,
    )
    return CalendarService(
        config.resolved_sources(), cache=cache, ttl=config.cache_ttl_seconds
    )


def build_remote_client(config: MonitorConfig) -> Optional[GoogleCalendarClient]:
    if not config.google_access_token:
        return None
    return GoogleCalendarClient(
        config.google_access_token, cache_ttl=config.cache_ttl_seconds
    )


async def fetch_external_meetings(
    remote_client: Optional[GoogleCalendarClient], now: datetime
) -> Optional[Sequence[Meeting]]:
    """Remote meetings, or None when the remote calendar is absent or failing.

    Served from the client's TTL snapshot, so polling once per tick per
    websocket client costs at most one API request per TTL.
    """
    if remote_client is None or not remote_client.is_authenticated:
        return None
    return await remote_client.get_events(now)


async def compute_update(
    service: CalendarService,
    remote_client: Optional[GoogleCalendarClient] = None,
    now: Optional[datetime] = None,
) -> MeetingUpdate:
    """Build one payload; failures degrade to empty slots."""
    now = now or now_utc()
    external = await fetch_external_meetings(remote_client, now)
    try:
        return await service.build_update(now, external_meetings=external)
    except Exception:
        logger.exception("Failed to build meeting update")
        return MeetingUpdate()


async def _handle_meetings(request: web.Request) -> web.Response:
    app = request.app
    update = await compute_update(app[SERVICE_KEY], app.get(REMOTE_CLIENT_KEY))
    return web.json_response(update.model_dump(mode="json"))


async def _push_updates(app: web.Application, ws: web.WebSocketResponse) -> None:
    interval = app[PUSH_INTERVAL_KEY]
    while not ws.closed:
        update = await compute_update(app[SERVICE_KEY], app.get(REMOTE_CLIENT_KEY))
        try:
            await ws.send_str(update.model_dump_json())
        except ConnectionResetError:
            logger.debug("Websocket client went away")
            return
        await asyncio.sleep(interval)


async def _handle_websocket(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    logger.info("Websocket client connected from %s", request.remote)

    pusher = asyncio.create_task(_push_updates(request.app, ws))
    try:
        # Inbound messages are ignored; the loop ends when the client closes
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                logger.warning("Websocket error: %s", ws.exception())
    finally:
        pusher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pusher
        logger.info("Websocket client disconnected")
    return ws


async def _on_cleanup(_app: web.Application) -> None:
    await close_all_clients()
    logger.debug("Shared HTTP clients cleaned up")


def make_app(
    service: CalendarService,
    remote_client: Optional[GoogleCalendarClient] = None,
    push_interval: float = PUSH_INTERVAL_SECONDS,
) -> web.Application:
    """Create the aiohttp application with its routes."""
    app = web.Application()
    app[SERVICE_KEY] = service
    if remote_client is not None:
        app[REMOTE_CLIENT_KEY] = remote_client
    app[PUSH_INTERVAL_KEY] = push_interval

    app.router.add_get("/api/meetings", _handle_meetings)
    app.router.add_get("/ws", _handle_websocket)
    app.on_cleanup.append(_on_cleanup)
    return app


async def _serve(config: MonitorConfig) -> None:
    """Run the server until SIGINT/SIGTERM."""
    app = make_app(build_service(config), build_remote_client(config))
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host=config.server_bind, port=config.server_port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s", config.bind_address)
        await runner.cleanup()
        raise
    logger.info("Server started successfully on %s", config.bind_address)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _on_signal() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    await runner.cleanup()
    logger.info("Server shutdown complete")


def start_server(config: MonitorConfig) -> None:
    """Start the asyncio event loop and HTTP server; blocks until stopped."""
    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


async def _render_once(config: MonitorConfig) -> MeetingUpdate:
    try:
        return await compute_update(build_service(config), build_remote_client(config))
    finally:
        await close_all_clients()


def render_once(config: MonitorConfig) -> str:
    """Compute a single payload and return it as JSON."""
    return asyncio.run(_render_once(config)).model_dump_json(indent=2)
