import asyncio
import json
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import Settings, get_settings
from .datasources.base import FetchError, FetchSuccess, SearchClient
from .datasources.github_adapter import GitHubSearchClient
from .schemas import SearchResponse, SearchState
from .services.controller import SearchController
from .services.query import EMPTY, normalize


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def create_app(settings: Optional[Settings] = None, search_client: Optional[SearchClient] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        owned = search_client is None
        app.state.search_client = search_client or GitHubSearchClient(
            base_url=str(settings.github_base_url),
            timeout=settings.request_timeout_seconds,
        )
        logger.info(f"[app] searching against {settings.github_base_url}")
        try:
            yield
        finally:
            if owned:
                await app.state.search_client.aclose()

    app = FastAPI(title="Repo Search", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/search", response_model=SearchResponse)
    async def search(q: str = Query(..., min_length=1)):
        query = normalize(q)
        if query is EMPTY:
            raise HTTPException(status_code=422, detail="Query must not be blank")
        outcome = await app.state.search_client.fetch(query)
        if isinstance(outcome, FetchError):
            raise HTTPException(status_code=502, detail=outcome.message)
        if not isinstance(outcome, FetchSuccess):
            raise HTTPException(status_code=503, detail="Search was cancelled")
        return SearchResponse(query=query, results=list(outcome.records))

    @app.websocket("/ws/search")
    async def search_session(websocket: WebSocket):
        await websocket.accept()
        controller = SearchController(app.state.search_client, debounce_seconds=settings.debounce_seconds)
        outbox: "asyncio.Queue[SearchState]" = asyncio.Queue()
        controller.subscribe(outbox.put_nowait)

        async def push_states():
            while True:
                state = await outbox.get()
                await websocket.send_json(state.model_dump(mode="json"))

        sender = asyncio.create_task(push_states())
        await outbox.put(controller.snapshot())
        try:
            while True:
                handle_frame(controller, await websocket.receive_text())
        except WebSocketDisconnect:
            logger.info("[ws] client disconnected")
        finally:
            await controller.aclose()
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)

    return app


def handle_frame(controller: SearchController, frame: str) -> None:
    """Apply one client frame: raw input text, or a JSON input/dismiss command."""
    try:
        message = json.loads(frame)
    except ValueError:
        message = None
    # anything that isn't a typed command is what the user typed
    if not isinstance(message, dict) or "type" not in message:
        controller.on_input_changed(frame)
        return

    kind = message.get("type")
    if kind == "input":
        controller.on_input_changed(str(message.get("value") or ""))
    elif kind == "dismiss":
        controller.dismiss_error()
    else:
        logger.warning(f"[ws] ignoring unknown message type {kind!r}")


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8020)
