from dataclasses import asdict

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from pydantic import BaseModel

from microclass.models import Lecture
from microclass.routes.session import get_store
from microclass.services.lectures import LectureStore
from microclass.services.summary import SummaryService

router = APIRouter(prefix="/api", tags=["classes"])


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class ClassCreate(BaseModel):
    name: str
    color: str = "pink"


class ClassUpdate(BaseModel):
    name: str | None = None
    color: str | None = None


def _lecture_dict(lecture: Lecture) -> dict:
    return {**asdict(lecture), "formatted_duration": lecture.formatted_duration}


# ------------------------------------------------------------------
# Class endpoints
# ------------------------------------------------------------------


@router.post("/classes")
async def create_class(body: ClassCreate, store: LectureStore = Depends(get_store)) -> dict:
    return asdict(await store.add_class(body.name, body.color))


@router.get("/classes")
async def list_classes(store: LectureStore = Depends(get_store)) -> list[dict]:
    return [asdict(c) for c in await store.load_all()]


@router.get("/classes/{class_id}")
async def get_class(class_id: int, store: LectureStore = Depends(get_store)) -> dict:
    return asdict(await store.get_class(class_id))


@router.patch("/classes/{class_id}")
async def update_class(
    class_id: int, body: ClassUpdate, store: LectureStore = Depends(get_store)
) -> dict:
    return asdict(await store.update_class(class_id, body.name, body.color))


@router.delete("/classes/{class_id}")
async def delete_class(class_id: int, store: LectureStore = Depends(get_store)) -> dict:
    await store.delete_class(class_id)
    return {"deleted": class_id}


# ------------------------------------------------------------------
# Lecture endpoints
# ------------------------------------------------------------------


@router.get("/lectures/{lecture_id}")
async def get_lecture(lecture_id: int, store: LectureStore = Depends(get_store)) -> dict:
    return _lecture_dict(await store.get_lecture(lecture_id))


@router.get("/lectures/{lecture_id}/audio")
async def get_lecture_audio(
    lecture_id: int, store: LectureStore = Depends(get_store)
) -> FileResponse:
    lecture = await store.get_lecture(lecture_id)
    return FileResponse(store.audio_path_for(lecture), media_type="audio/wav")


@router.delete("/lectures/{lecture_id}")
async def delete_lecture(lecture_id: int, store: LectureStore = Depends(get_store)) -> dict:
    await store.delete_lecture(lecture_id)
    return {"deleted": lecture_id}


@router.post("/lectures/{lecture_id}/summary")
async def summarize_lecture(
    lecture_id: int, store: LectureStore = Depends(get_store)
) -> dict:
    """Generate a summary with Groq and store it on the lecture."""
    lecture = await store.get_lecture(lecture_id)
    summary = await SummaryService().summarize(lecture)
    return _lecture_dict(await store.update_lecture_summary(lecture_id, summary))
