import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import APIRouter
from loguru import logger
from sse_starlette.sse import AppStatus

from synapse.bridge.control import ControlChannel
from synapse.bridge.delivery.channel import DeliveryChannel
from synapse.bridge.delivery.relay import RedisRelay, Relay
from synapse.bridge.demo import DemoSource
from synapse.bridge.log import setup_logging
from synapse.bridge.poller import create_poll_loop
from synapse.bridge.ratelimit import RateLimiter, Window
from synapse.bridge.settings import SynapseSettings, get_settings


def _create_relay(settings: SynapseSettings) -> Relay | None:
    """Create the pub/sub relay based on configuration."""
    settings.validate_delivery()
    if settings.relay == "redis" and settings.redis_url is not None:
        return RedisRelay.from_url(settings.redis_url.get_secret_value())
    return None


def create_trigger_limiter(settings: SynapseSettings) -> RateLimiter:
    return RateLimiter([
        Window(settings.trigger_burst_limit, settings.trigger_burst_window),
        Window(settings.trigger_hourly_limit, settings.trigger_hourly_window),
    ])


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, source=settings.source)

    logger.info("Synapse bridge starting (host={}, port={}, source={})", settings.host, settings.port, settings.source)

    # -- Relay -----------------------------------------------------------------
    # Raises ConfigurationError before anything is served.
    relay = _create_relay(settings)
    if relay is not None:
        logger.info("Relay: redis (live={}, control={})", settings.live_channel, settings.control_channel)
    else:
        logger.info("Relay: disabled, local observers only")

    # -- Channels --------------------------------------------------------------
    _app.state.channel = DeliveryChannel(
        queue_size=settings.observer_queue_size,
        relay=relay,
        relay_topic=settings.live_channel,
    )
    _app.state.control = ControlChannel(relay=relay, topic=settings.control_channel)
    _app.state.limiter = create_trigger_limiter(settings)
    _app.state.driver = None

    # -- SSE -------------------------------------------------------------------
    # Streams end when their observer is closed during shutdown, after the
    # final session_end has been queued.
    AppStatus.disable_automatic_graceful_drain()

    # -- Driver ----------------------------------------------------------------
    stop = asyncio.Event()
    driver_task: asyncio.Task | None = None
    if settings.watches_directory:
        poller = create_poll_loop(settings, _app.state.channel)
        _app.state.driver = poller
        driver_task = asyncio.create_task(poller.run(stop), name="synapse-poll")
    elif settings.source == "demo":
        demo = DemoSource(
            _app.state.channel,
            min_delay=settings.demo_min_delay,
            max_delay=settings.demo_max_delay,
            max_content_len=settings.max_content_len,
        )
        _app.state.driver = demo
        driver_task = asyncio.create_task(demo.run(stop), name="synapse-demo")
    else:
        logger.info("Driver: none started (pipe input is fed by the CLI)")

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Synapse bridge shutting down (observers={})", len(_app.state.channel.observers))

    # 1. Stop the driver; a tick in progress finishes and session_end is sent.
    stop.set()
    if driver_task is not None:
        await driver_task
    await _app.state.channel.end_session()

    # 2. Close observers so SSE / WebSocket streams finish after the end marker.
    await _app.state.channel.aclose()
    await _app.state.control.aclose()
    AppStatus.should_exit = True
    logger.info("SSE: signalled streams to close")

    if relay is not None:
        await relay.aclose()
        logger.info("Relay: closed")


app = FastAPI(title="Synapse Bridge", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- all HTTP endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from synapse.bridge.routers.sessions import router as sessions_router  # noqa: E402
from synapse.bridge.routers.stream import router as stream_router  # noqa: E402
from synapse.bridge.routers.stream import ws_router  # noqa: E402
from synapse.bridge.routers.trigger import router as trigger_router  # noqa: E402

api.include_router(stream_router)
api.include_router(sessions_router)
api.include_router(trigger_router)

app.include_router(api)
app.include_router(ws_router)
