import threading
from contextlib import asynccontextmanager

import anyio
import anyio.to_thread
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis as AsyncRedis

from app.config import Settings, get_settings
from app.infrastructure.database import SessionLocal, engine, initialize_database
from app.infrastructure.dispatch import build_dispatch_queue, build_realtime_channel
from app.infrastructure.notifications import (
    RealtimeChannel,
    RedisNotificationRelay,
    notification_manager,
)
from app.infrastructure.queue import DispatchQueue
from app.interfaces.api.routes import register_routes
from app.utils import configure_logging
from app.worker import build_worker


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the tables, run the embedded workers and the realtime relay."""

    settings: Settings = app.state.settings
    initialize_database()

    worker_stop = threading.Event()
    relay_stop = anyio.Event()
    async with anyio.create_task_group() as task_group:
        if settings.run_embedded_worker:
            worker = build_worker(
                settings,
                app.state.dispatch_queue,
                app.state.realtime_channel,
                app.state.session_factory,
            )
            for _ in range(settings.worker_concurrency):
                task_group.start_soon(anyio.to_thread.run_sync, worker.run, worker_stop)

        if settings.queue_backend == "redis":
            relay = RedisNotificationRelay(
                AsyncRedis.from_url(settings.redis_url),
                settings.realtime_channel_name,
                notification_manager,
            )
            task_group.start_soon(relay.run, relay_stop)

        try:
            yield
        finally:
            worker_stop.set()
            relay_stop.set()
            await notification_manager.close_all()
    engine.dispose()


def create_app(
    settings: Settings | None = None,
    *,
    dispatch_queue: DispatchQueue | None = None,
    realtime_channel: RealtimeChannel | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Notification dispatch", lifespan=lifespan)
    app.state.settings = settings
    app.state.dispatch_queue = dispatch_queue or build_dispatch_queue(settings)
    app.state.realtime_channel = realtime_channel or build_realtime_channel(settings)
    app.state.session_factory = SessionLocal

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
