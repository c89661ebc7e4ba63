"""Wall session APIs: layout state, live events, drag input and export."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from ..models.schemas import CreateWallRequest, ExportRequest, PointerRequest, ResizeRequest
from ..services.export import ExportCompositor, ExportError
from ..services.wall import PhotoWall
from ..services.wall_sessions import wall_sessions

logger = logging.getLogger(__name__)

router = APIRouter()

_default_compositor = ExportCompositor()


def get_compositor() -> ExportCompositor:
    return _default_compositor


def _apply_pointer(wall: PhotoWall, body: PointerRequest) -> Dict[str, Any]:
    photo = None
    if body.action == "down":
        if not body.key:
            raise ValueError("pointer down requires a photo key")
        handled = wall.on_pointer_down(body.key, body.x, body.y)
    elif body.action == "move":
        handled = wall.on_pointer_move(body.x, body.y)
    elif body.action == "up":
        handled = wall.on_pointer_up()
    else:
        if not body.key:
            raise ValueError("click requires a photo key")
        expanded = wall.on_click(body.key)
        handled = expanded is not None
        photo = expanded.to_payload() if expanded else None
    return {"handled": handled, "photo": photo, "wall": wall.to_payload()}


def _not_found(client_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"wall not found: {client_id}")


@router.get("/api/clients")
async def api_list_clients() -> dict:
    clients = await wall_sessions.list_clients()
    return {"clients": clients}


@router.put("/api/walls/{client_id}")
async def api_create_wall(client_id: str, body: CreateWallRequest) -> dict:
    return await wall_sessions.create(
        client_id,
        viewport_width=body.viewport_width,
        viewport_height=body.viewport_height,
        photos=body.photos,
        seed=body.seed,
    )


@router.get("/api/walls/{client_id}")
async def api_get_wall(client_id: str) -> dict:
    state = await wall_sessions.run(client_id, lambda wall: wall.to_payload())
    if state is None:
        raise _not_found(client_id)
    return state


@router.delete("/api/walls/{client_id}", status_code=204)
async def api_delete_wall(client_id: str) -> Response:
    if not await wall_sessions.drop(client_id):
        raise _not_found(client_id)
    return Response(status_code=204)


@router.post("/api/walls/{client_id}/events")
async def api_apply_event(client_id: str, body: Any = Body(...)) -> dict:
    result = await wall_sessions.run(
        client_id,
        lambda wall: {"applied": wall.on_live_event(body), "wall": wall.to_payload()},
    )
    if result is None:
        raise _not_found(client_id)
    return result


@router.post("/api/events")
async def api_broadcast_event(body: Any = Body(...)) -> dict:
    results = await wall_sessions.broadcast_event(body)
    return {"results": results}


@router.post("/api/walls/{client_id}/resize")
async def api_resize_wall(client_id: str, body: ResizeRequest) -> dict:
    def resize(wall: PhotoWall) -> dict:
        wall.on_resize(body.viewport_width, body.viewport_height)
        return wall.to_payload()

    state = await wall_sessions.run(client_id, resize)
    if state is None:
        raise _not_found(client_id)
    return state


@router.post("/api/walls/{client_id}/pointer")
async def api_pointer(client_id: str, body: PointerRequest) -> dict:
    try:
        result = await wall_sessions.run(client_id, lambda wall: _apply_pointer(wall, body))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if result is None:
        raise _not_found(client_id)
    return result


@router.post("/api/walls/{client_id}/export")
async def api_export_wall(
    client_id: str,
    body: Optional[ExportRequest] = None,
    save: bool = Query(default=False),
    compositor: ExportCompositor = Depends(get_compositor),
) -> Response:
    body = body or ExportRequest()
    snapshot = await wall_sessions.run(client_id, lambda wall: wall.snapshot())
    if snapshot is None:
        raise _not_found(client_id)

    try:
        result = await compositor.export(snapshot, quality=body.quality, fmt=body.format)
    except ExportError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    headers = {
        "Content-Disposition": f'attachment; filename="{result.filename}"',
        "X-Export-Failed-Photos": ",".join(result.failed_keys),
    }
    if save:
        output_path, _ = await run_in_threadpool(compositor.save, result)
        headers["X-Export-Path"] = output_path
    return Response(content=result.content, media_type=result.media_type, headers=headers)


def _handle_ws_message(wall: PhotoWall, message: Dict[str, Any]) -> bool:
    msg_type = message.get("type")
    if msg_type in ("photo-added", "photo-removed"):
        wall.on_live_event(message)
        return True
    if msg_type == "pointer":
        _apply_pointer(wall, PointerRequest.model_validate(message))
        return True
    if msg_type == "resize":
        body = ResizeRequest.model_validate(message)
        wall.on_resize(body.viewport_width, body.viewport_height)
        return True
    return False


@router.websocket("/ws/wall")
async def websocket_wall(websocket: WebSocket, client: str = Query(...)) -> None:
    await websocket.accept()
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(message, dict):
                continue

            try:
                state = await wall_sessions.run(
                    client,
                    lambda wall: wall.to_payload() if _handle_ws_message(wall, message) else None,
                )
            except (ValidationError, ValueError) as exc:
                logger.warning("Skipping websocket message for %s: %s", client, exc)
                continue
            if state is not None:
                await websocket.send_json({"type": "wall_state", "client_id": client, "wall": state})
    except WebSocketDisconnect:
        return
