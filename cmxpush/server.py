# cmxpush/server.py
"""
FastAPI server receiving CMX location pushes.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse, PlainTextResponse, Response

from cmxpush.config import Settings
from cmxpush.exceptions import MalformedPayload
from cmxpush.ingest.events import EventIngestor
from cmxpush.query import QueryService
from cmxpush.storage.dao import ClientStore
from cmxpush.utils.log import get_logger

logger = get_logger(__name__)


def create_app(settings: Settings, store: Optional[ClientStore] = None) -> FastAPI:
    """
    Build a FastAPI instance bound to one configuration and one client store.

    When no store is given, one is opened on `settings.db_path` and closed
    again at shutdown.
    """
    owns_store = store is None
    if store is None:
        store = ClientStore(settings.db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_store:
            store.close()

    app = FastAPI(title="cmxpush", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.ingestor = EventIngestor(store, settings)
    app.state.queries = QueryService(store)

    @app.exception_handler(MalformedPayload)
    async def malformed_payload(request: Request, exc: MalformedPayload) -> JSONResponse:
        peer = request.client.host if request.client else "unknown"
        logger.warning("Rejected post from %s: %s", peer, exc)
        return JSONResponse(status_code=400, content={"detail": "malformed event batch"})

    # mount all API endpoints first
    @app.get("/events", response_class=PlainTextResponse)
    async def validate(request: Request) -> PlainTextResponse:
        """
        Handshake: the provider expects the validator string verbatim.
        """
        return PlainTextResponse(request.app.state.settings.validator)

    @app.post("/events")
    async def receive_events(request: Request) -> Response:
        """
        Accept a pushed batch. A wrong secret gets the same empty 200 as a good one.
        """
        body = await request.body()
        ingestor: EventIngestor = request.app.state.ingestor
        await run_in_threadpool(ingestor.ingest, body, request.headers.get("content-type"))
        return Response(status_code=200)

    @app.get("/clients/{mac}")
    def get_client(request: Request, mac: str) -> dict[str, Any]:
        return request.app.state.queries.get_client(mac)

    @app.get("/clients")
    @app.get("/clients/")
    def list_clients(request: Request) -> list[dict[str, Any]]:
        return request.app.state.queries.list_clients()

    @app.get("/api/status", response_class=JSONResponse)
    async def status(request: Request) -> JSONResponse:
        return JSONResponse(
            status_code=200,
            content={
                "status": "ok",
                "clients": request.app.state.store.count(),
                "rejected_posts": request.app.state.ingestor.rejected_posts,
            },
        )

    # mount the static UI last
    static_dir = Path(__file__).parent / "webapp"
    if static_dir.exists():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="webapp")
    else:
        logger.warning("Static directory %s does not exist", static_dir)

    return app
