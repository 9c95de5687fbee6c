import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from microclass.config import settings
from microclass.database import init_db
from microclass.errors import (
    CaptureFailure,
    InvalidTransition,
    MicroclassError,
    NotFound,
    PermissionDenied,
    PersistenceFailure,
    SummaryFailure,
)
from microclass.routes import classes, session
from microclass.services.lectures import LectureStore
from microclass.session import SessionController

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    PermissionDenied: 403,
    NotFound: 404,
    InvalidTransition: 409,
    CaptureFailure: 500,
    PersistenceFailure: 500,
    SummaryFailure: 502,
}


def _default_controller() -> SessionController:
    # Imported here: sounddevice needs PortAudio and faster-whisper is heavy
    from microclass.recording.capture import SoundDeviceCapture
    from microclass.services.transcription import WhisperRecognitionService

    return SessionController(SoundDeviceCapture(), WhisperRecognitionService())


def create_app(
    controller: SessionController | None = None,
    store: LectureStore | None = None,
) -> FastAPI:
    """Build the API.  Tests pass their own controller/store."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create SQLite tables on startup; release capture on shutdown."""
        app.state.store = store or LectureStore()
        await init_db(app.state.store.db_path)
        app.state.controller = controller or _default_controller()
        yield
        await app.state.controller.close()

    app = FastAPI(
        title="microclass",
        description="Live lecture transcription organized into classes",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(session.router)
    app.include_router(classes.router)

    @app.exception_handler(MicroclassError)
    async def _microclass_error(_request: Request, exc: MicroclassError) -> JSONResponse:
        status = _STATUS_BY_ERROR.get(type(exc), 500)
        if status >= 500:
            logger.error("%s: %s", type(exc).__name__, exc)
        return JSONResponse(
            status_code=status,
            content={"detail": str(exc), "error": type(exc).__name__},
        )

    @app.exception_handler(ValueError)
    async def _value_error(_request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    return app


def run() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
