import json
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from ninetynine import MalformedActionError

from .absence import AbsenceManager
from .config import settings
from .connection_manager import ConnectionManager
from .game_manager import GameManager
from .store import build_store

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

SESSION_COOKIE = "sid"


# --- SINGLETON INSTANCES ---
store = build_store(settings.STORE_BACKEND, settings.REDIS_URL)
connection_manager = ConnectionManager()
absence_manager = AbsenceManager(store, grace_seconds=settings.ABSENCE_GRACE_SECONDS)
game_manager = GameManager(
    store,
    connection_manager,
    absence_manager,
    retry_limit=settings.SAVE_RETRY_LIMIT,
)


@asynccontextmanager
async def lifespan(app):
    try:
        yield
    finally:
        await store.close()
        logger.info("Stop Server")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.WEB_ORIGIN],
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["content-type"],
)


@app.get("/")
def root():
    return RedirectResponse(settings.WEB_ORIGIN)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}


@app.get("/session")
def session(request: Request):
    """Give the browser a stable anonymous identity for its websocket."""
    response = Response(status_code=204)
    if not request.cookies.get(SESSION_COOKIE):
        response.set_cookie(
            SESSION_COOKIE,
            str(uuid.uuid4()),
            path="/",
            httponly=True,
            samesite="lax",
            secure=settings.SECURE_COOKIES,
        )
    return response


# The main WebSocket endpoint
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    client_id = websocket.cookies.get(SESSION_COOKIE) or str(uuid.uuid4())
    await websocket.accept()
    await connection_manager.add_connection(client_id, websocket)
    await websocket.send_json({"method": "connect", "clientId": client_id})
    try:
        await game_manager.handle_connect(client_id)
        while True:
            text = await websocket.receive_text()
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                await game_manager.send_error(client_id, None, MalformedActionError("Message is not valid JSON."))
                continue
            await game_manager.handle_message(client_id, data)
    except WebSocketDisconnect:
        pass
    finally:
        await game_manager.handle_disconnect(client_id, websocket)
