import asyncio
import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from microclass.models import Language
from microclass.services.lectures import LectureStore
from microclass.session import SessionController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session"])


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class LanguageChange(BaseModel):
    language: Language


class LectureSave(BaseModel):
    class_id: int
    title: str


# ------------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------------


def get_controller(request: Request) -> SessionController:
    return request.app.state.controller


def get_store(request: Request) -> LectureStore:
    return request.app.state.store


# ==================================================================
# REST endpoints
# ==================================================================


@router.get("/api/session")
async def get_session(controller: SessionController = Depends(get_controller)) -> dict:
    return controller.snapshot()


@router.post("/api/session/start")
async def start_session(controller: SessionController = Depends(get_controller)) -> dict:
    """Start (or resume) recording. Existing draft text is kept."""
    await controller.start()
    return controller.snapshot()


@router.post("/api/session/pause")
async def pause_session(controller: SessionController = Depends(get_controller)) -> dict:
    await controller.pause()
    return controller.snapshot()


@router.post("/api/session/resume")
async def resume_session(controller: SessionController = Depends(get_controller)) -> dict:
    await controller.resume()
    return controller.snapshot()


@router.post("/api/session/stop")
async def stop_session(controller: SessionController = Depends(get_controller)) -> dict:
    await controller.stop()
    return controller.snapshot()


@router.post("/api/session/finish")
async def finish_session(controller: SessionController = Depends(get_controller)) -> dict:
    await controller.finish()
    return controller.snapshot()


@router.post("/api/session/new")
async def new_lecture(controller: SessionController = Depends(get_controller)) -> dict:
    """Discard the completed lecture and its temporary audio."""
    controller.start_new_lecture()
    return controller.snapshot()


@router.post("/api/session/clear")
async def clear_text(controller: SessionController = Depends(get_controller)) -> dict:
    controller.clear_text()
    return controller.snapshot()


@router.put("/api/session/language")
async def change_language(
    body: LanguageChange, controller: SessionController = Depends(get_controller)
) -> dict:
    controller.change_language(body.language)
    return controller.snapshot()


@router.post("/api/session/save")
async def save_lecture(
    body: LectureSave,
    controller: SessionController = Depends(get_controller),
    store: LectureStore = Depends(get_store),
) -> dict:
    """Commit the completed session to a class, then reset for the next lecture."""
    if not controller.is_lecture_completed or not controller.audio_path:
        raise HTTPException(status_code=409, detail="No completed lecture to save.")

    lecture = await store.save_lecture(
        body.class_id, body.title, controller.lecture_text, controller.audio_path
    )
    controller.start_new_lecture()
    return {**asdict(lecture), "formatted_duration": lecture.formatted_duration}


# ==================================================================
# WebSocket endpoint
# ==================================================================


@router.websocket("/ws/session")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Live session state: one JSON snapshot per change."""
    await websocket.accept()
    controller: SessionController = websocket.app.state.controller
    outbox: asyncio.Queue = asyncio.Queue(maxsize=256)

    def _on_change(snapshot: dict) -> None:
        # Level updates arrive per frame; a slow client just misses some
        if not outbox.full():
            outbox.put_nowait(snapshot)

    unsubscribe = controller.subscribe(_on_change)
    sender = asyncio.create_task(_pump(websocket, outbox))
    await outbox.put(controller.snapshot())

    try:
        while True:
            await websocket.receive_text()  # keep-alive; client sends pings
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect):
            pass
        except RuntimeError as e:
            # Sending on a socket the client already closed
            logger.debug("Session socket sender stopped: %s", e)


async def _pump(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    while True:
        snapshot = await outbox.get()
        await websocket.send_json({"type": "session_state", **snapshot})
