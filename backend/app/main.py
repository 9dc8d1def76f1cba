from __future__ import annotations

import asyncio
import importlib.util
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from pydantic import ValidationError

from .config import load_environment
from .engine import catalog_model
from .models import (
    CatalogModel,
    OpponentModeRequestModel,
    RoundSummaryModel,
    SelectGameRequestModel,
    SessionStateModel,
    SubmitRequestModel,
    WagerRequestModel,
)
from .rules import InvalidInputError
from .session_manager import SessionManager, SessionNotFoundError

load_environment()

logger = logging.getLogger(__name__)

DefaultResponseClass = ORJSONResponse if importlib.util.find_spec("orjson") else JSONResponse
manager = SessionManager()


@asynccontextmanager
async def lifespan(_: FastAPI):
    try:
        yield
    finally:
        await manager.aclose()


app = FastAPI(
    title="Wager Arena API",
    version="0.1.0",
    default_response_class=DefaultResponseClass,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _run_intent(call: Awaitable[SessionStateModel]) -> SessionStateModel:
    try:
        return await call
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.get("/api/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/catalog", response_model=CatalogModel)
async def get_catalog() -> CatalogModel:
    return catalog_model()


@app.post("/api/sessions", response_model=SessionStateModel)
async def create_session() -> SessionStateModel:
    return await manager.create_session()


@app.get("/api/sessions/{session_id}", response_model=SessionStateModel)
async def get_session(session_id: str) -> SessionStateModel:
    return await _run_intent(manager.get_state(session_id))


@app.delete("/api/sessions/{session_id}", status_code=204)
async def close_session(session_id: str) -> None:
    try:
        await manager.close_session(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.post("/api/sessions/{session_id}/select", response_model=SessionStateModel)
async def select_game(session_id: str, payload: SelectGameRequestModel) -> SessionStateModel:
    return await _run_intent(manager.select_game(session_id, payload.game_id))


@app.post("/api/sessions/{session_id}/back", response_model=SessionStateModel)
async def back(session_id: str) -> SessionStateModel:
    return await _run_intent(manager.back(session_id))


@app.post("/api/sessions/{session_id}/opponent", response_model=SessionStateModel)
async def set_opponent_mode(session_id: str, payload: OpponentModeRequestModel) -> SessionStateModel:
    return await _run_intent(manager.set_opponent_mode(session_id, payload.mode))


@app.post("/api/sessions/{session_id}/wager", response_model=SessionStateModel)
async def set_wager(session_id: str, payload: WagerRequestModel) -> SessionStateModel:
    return await _run_intent(manager.set_wager(session_id, payload.amount, payload.token))


@app.post("/api/sessions/{session_id}/start", response_model=SessionStateModel)
async def start(session_id: str) -> SessionStateModel:
    return await _run_intent(manager.start(session_id))


@app.post("/api/sessions/{session_id}/submit", response_model=SessionStateModel)
async def submit(session_id: str, payload: SubmitRequestModel) -> SessionStateModel:
    return await _run_intent(manager.submit(session_id, payload.choice))


@app.post("/api/sessions/{session_id}/rematch", response_model=SessionStateModel)
async def rematch(session_id: str) -> SessionStateModel:
    return await _run_intent(manager.rematch(session_id))


@app.post("/api/sessions/{session_id}/new-game", response_model=SessionStateModel)
async def new_game(session_id: str) -> SessionStateModel:
    return await _run_intent(manager.new_game(session_id))


@app.get("/api/sessions/{session_id}/rounds", response_model=list[RoundSummaryModel])
async def list_rounds(session_id: str) -> list[RoundSummaryModel]:
    try:
        return await manager.list_rounds(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _ws_error_payload(request_id: str, status: int, message: str, extra: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": "error",
        "requestId": request_id,
        "status": status,
        "message": message,
    }
    if extra:
        payload.update(extra)
    return payload


def _state_message(state: SessionStateModel, request_id: str = "") -> dict[str, Any]:
    return {
        "type": "session_state",
        "requestId": request_id,
        "payload": state.model_dump(by_alias=True),
    }


class UnsupportedOpError(ValueError):
    pass


async def _dispatch_ws_intent(session_id: str, op: str, message: dict[str, Any]) -> SessionStateModel:
    if op == "get_state":
        return await manager.get_state(session_id)
    if op == "select_game":
        payload = SelectGameRequestModel.model_validate({"gameId": message.get("gameId")})
        return await manager.select_game(session_id, payload.game_id)
    if op == "back":
        return await manager.back(session_id)
    if op == "set_opponent_mode":
        mode_payload = OpponentModeRequestModel.model_validate({"mode": message.get("mode")})
        return await manager.set_opponent_mode(session_id, mode_payload.mode)
    if op == "set_wager":
        wager_payload = WagerRequestModel.model_validate({"amount": message.get("amount"), "token": message.get("token")})
        return await manager.set_wager(session_id, wager_payload.amount, wager_payload.token)
    if op == "start":
        return await manager.start(session_id)
    if op == "submit":
        submit_payload = SubmitRequestModel.model_validate({"choice": message.get("choice")})
        return await manager.submit(session_id, submit_payload.choice)
    if op == "rematch":
        return await manager.rematch(session_id)
    if op == "new_game":
        return await manager.new_game(session_id)
    raise UnsupportedOpError(f"Unsupported websocket op: {op}")


async def _push_updates(websocket: WebSocket, queue: asyncio.Queue[SessionStateModel]) -> None:
    while True:
        state = await queue.get()
        await websocket.send_json(_state_message(state))


@app.websocket("/api/ws/sessions/{session_id}")
async def session_socket(websocket: WebSocket, session_id: str) -> None:
    await websocket.accept()
    try:
        initial_state = await manager.get_state(session_id)
        updates, unsubscribe = await manager.subscribe(session_id)
    except SessionNotFoundError as exc:
        await websocket.send_json(_ws_error_payload(request_id="", status=404, message=str(exc)))
        await websocket.close(code=4404)
        return

    await websocket.send_json(_state_message(initial_state))
    pusher = asyncio.create_task(_push_updates(websocket, updates))

    try:
        while True:
            try:
                raw_message = await websocket.receive_json()
            except WebSocketDisconnect:
                return
            except ValueError:
                await websocket.send_json(_ws_error_payload(request_id="", status=400, message="Malformed websocket JSON payload."))
                continue

            if not isinstance(raw_message, dict):
                await websocket.send_json(_ws_error_payload(request_id="", status=400, message="Websocket message must be a JSON object."))
                continue

            request_id = str(raw_message.get("requestId", ""))
            op = str(raw_message.get("op", "")).strip().lower()

            if op == "ping":
                await websocket.send_json({"type": "pong", "requestId": request_id})
                continue

            try:
                state = await _dispatch_ws_intent(session_id, op, raw_message)
                await websocket.send_json(
                    {
                        "type": "intent_result",
                        "requestId": request_id,
                        "payload": state.model_dump(by_alias=True),
                    }
                )
            except SessionNotFoundError as exc:
                await websocket.send_json(_ws_error_payload(request_id=request_id, status=404, message=str(exc)))
            except UnsupportedOpError as exc:
                await websocket.send_json(_ws_error_payload(request_id=request_id, status=400, message=str(exc)))
            except ValidationError as exc:
                await websocket.send_json(
                    _ws_error_payload(
                        request_id=request_id,
                        status=422,
                        message="Invalid intent payload.",
                        extra={"detail": exc.errors(include_url=False, include_context=False)},
                    )
                )
            except InvalidInputError as exc:
                await websocket.send_json(_ws_error_payload(request_id=request_id, status=422, message=str(exc)))
    finally:
        unsubscribe()
        pusher.cancel()
        try:
            await pusher
        except asyncio.CancelledError:
            pass
        except Exception as exc:  # pragma: no cover - depends on how the client dropped
            logger.warning("State push for session %s failed: %s", session_id, exc)
        logger.debug("Websocket for session %s closed.", session_id)
