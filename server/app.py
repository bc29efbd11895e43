import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI

from db.database import Database
from detector.monitor import MeetingActivityMonitor
from server.routes import create_router
from server.websocket import ConnectionManager
from session.controller import RecordingSessionController


def create_app(db: Database, controller: RecordingSessionController,
               monitor: MeetingActivityMonitor | None = None) -> FastAPI:
    manager = ConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        unsubscribe = controller.bus.subscribe_all(manager.enqueue)
        broadcaster = asyncio.create_task(manager.run())
        if monitor is not None:
            monitor.start()
        try:
            yield
        finally:
            if monitor is not None:
                await monitor.stop()
            await controller.shutdown()
            unsubscribe()
            broadcaster.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await broadcaster

    app = FastAPI(title="MeetScribe", version="0.1.0", lifespan=lifespan)

    router = create_router(db, controller, monitor, manager)
    app.include_router(router, prefix="/api")

    return app
