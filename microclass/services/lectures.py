import logging
import sqlite3

from microclass.config import settings
from microclass.database import get_async_conn
from microclass.errors import NotFound, PersistenceFailure
from microclass.models import CLASS_COLORS, Lecture, StudyClass
from microclass.services.storage import StorageService

logger = logging.getLogger(__name__)


def _lecture_from_row(row) -> Lecture:  # noqa: ANN001
    return Lecture(
        id=row["id"],
        class_id=row["class_id"],
        title=row["title"],
        transcript=row["transcript"],
        audio_file_name=row["audio_file_name"],
        duration_seconds=row["duration_seconds"],
        created_at=row["created_at"],
        summary=row["summary"],
    )


def _check_color(color: str) -> None:
    if color not in CLASS_COLORS:
        raise ValueError(f"Unknown class color {color!r}")


class LectureStore:
    """Classes and their lectures in SQLite, lecture audio on disk.

    Every write is committed immediately.  Failures surface as
    ``PersistenceFailure``; nothing is rolled back in the live session.
    """

    def __init__(
        self, db_path: str | None = None, storage: StorageService | None = None
    ) -> None:
        self.db_path = db_path or settings.db_path
        self.storage = storage or StorageService()

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    async def add_class(self, name: str, color: str = "pink") -> StudyClass:
        _check_color(color)
        conn = await get_async_conn(self.db_path)
        try:
            cursor = await conn.execute(
                "INSERT INTO classes (name, color) VALUES (?, ?)", (name, color)
            )
            await conn.commit()
            row = await conn.execute(
                "SELECT * FROM classes WHERE id = ?", (cursor.lastrowid,)
            )
            created = await row.fetchone()
            return StudyClass(
                id=created["id"],
                name=created["name"],
                color=created["color"],
                created_at=created["created_at"],
            )
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to save class '{name}': {e}") from e
        finally:
            await conn.close()

    async def update_class(
        self, class_id: int, name: str | None = None, color: str | None = None
    ) -> StudyClass:
        if color is not None:
            _check_color(color)
        conn = await get_async_conn(self.db_path)
        try:
            await self._class_row_or_raise(conn, class_id)
            if name is not None:
                await conn.execute(
                    "UPDATE classes SET name = ? WHERE id = ?", (name, class_id)
                )
            if color is not None:
                await conn.execute(
                    "UPDATE classes SET color = ? WHERE id = ?", (color, class_id)
                )
            await conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to update class {class_id}: {e}") from e
        finally:
            await conn.close()
        return await self.get_class(class_id)

    async def delete_class(self, class_id: int) -> None:
        """Delete a class, its lectures and their audio files."""
        conn = await get_async_conn(self.db_path)
        try:
            await self._class_row_or_raise(conn, class_id)
            rows = await conn.execute(
                "SELECT audio_file_name FROM lectures WHERE class_id = ?", (class_id,)
            )
            audio_files = [row["audio_file_name"] for row in await rows.fetchall()]
            await conn.execute("DELETE FROM lectures WHERE class_id = ?", (class_id,))
            await conn.execute("DELETE FROM classes WHERE id = ?", (class_id,))
            await conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to delete class {class_id}: {e}") from e
        finally:
            await conn.close()

        for name in audio_files:
            self.storage.delete_audio(name)
        logger.info("Deleted class %d (%d lectures)", class_id, len(audio_files))

    async def get_class(self, class_id: int) -> StudyClass:
        for study_class in await self.load_all():
            if study_class.id == class_id:
                return study_class
        raise NotFound(f"Class {class_id} not found")

    async def load_all(self) -> list[StudyClass]:
        """Every class, oldest first, with its lectures attached."""
        conn = await get_async_conn(self.db_path)
        try:
            rows = await conn.execute("SELECT * FROM classes ORDER BY id")
            classes = [
                StudyClass(
                    id=row["id"],
                    name=row["name"],
                    color=row["color"],
                    created_at=row["created_at"],
                )
                for row in await rows.fetchall()
            ]
            rows = await conn.execute("SELECT * FROM lectures ORDER BY id")
            lectures = [_lecture_from_row(row) for row in await rows.fetchall()]
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to load classes: {e}") from e
        finally:
            await conn.close()

        by_id = {c.id: c for c in classes}
        for lecture in lectures:
            if lecture.class_id in by_id:
                by_id[lecture.class_id].lectures.append(lecture)
        return classes

    # ------------------------------------------------------------------
    # Lectures
    # ------------------------------------------------------------------

    async def save_lecture(
        self, class_id: int, title: str, transcript: str, temp_audio_path: str
    ) -> Lecture:
        """Commit a completed session: move its audio and insert the lecture."""
        audio_file_name = None
        committed = False
        conn = await get_async_conn(self.db_path)
        try:
            await self._class_row_or_raise(conn, class_id)
            audio_file_name, duration = self.storage.import_audio(temp_audio_path)
            cursor = await conn.execute(
                """INSERT INTO lectures
                   (class_id, title, transcript, audio_file_name, duration_seconds)
                   VALUES (?, ?, ?, ?, ?)""",
                (class_id, title, transcript, audio_file_name, duration),
            )
            await conn.commit()
            committed = True
            row = await conn.execute(
                "SELECT * FROM lectures WHERE id = ?", (cursor.lastrowid,)
            )
            lecture = _lecture_from_row(await row.fetchone())
        except sqlite3.Error as e:
            logger.error("Saving lecture '%s' failed: %s", title, e)
            if audio_file_name is not None and not committed:
                # The session still owns its recording, so a retry can succeed
                self.storage.restore_audio(audio_file_name, temp_audio_path)
            raise PersistenceFailure(f"Failed to save lecture '{title}': {e}") from e
        finally:
            await conn.close()

        logger.info(
            "Saved lecture %d '%s' (%s)", lecture.id, title, lecture.formatted_duration
        )
        return lecture

    async def get_lecture(self, lecture_id: int) -> Lecture:
        conn = await get_async_conn(self.db_path)
        try:
            row = await self._lecture_row_or_raise(conn, lecture_id)
            return _lecture_from_row(row)
        finally:
            await conn.close()

    async def delete_lecture(self, lecture_id: int) -> None:
        conn = await get_async_conn(self.db_path)
        try:
            row = await self._lecture_row_or_raise(conn, lecture_id)
            audio_file_name = row["audio_file_name"]
            await conn.execute("DELETE FROM lectures WHERE id = ?", (lecture_id,))
            await conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to delete lecture {lecture_id}: {e}") from e
        finally:
            await conn.close()
        self.storage.delete_audio(audio_file_name)

    async def update_lecture_summary(self, lecture_id: int, summary: str) -> Lecture:
        """The only mutation a saved lecture accepts."""
        conn = await get_async_conn(self.db_path)
        try:
            await self._lecture_row_or_raise(conn, lecture_id)
            await conn.execute(
                "UPDATE lectures SET summary = ? WHERE id = ?", (summary, lecture_id)
            )
            await conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to save summary: {e}") from e
        finally:
            await conn.close()
        return await self.get_lecture(lecture_id)

    def audio_path_for(self, lecture: Lecture) -> str:
        return self.storage.audio_path(lecture.audio_file_name)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _class_row_or_raise(self, conn, class_id: int):  # noqa: ANN001
        row = await conn.execute("SELECT * FROM classes WHERE id = ?", (class_id,))
        found = await row.fetchone()
        if not found:
            raise NotFound(f"Class {class_id} not found")
        return found

    async def _lecture_row_or_raise(self, conn, lecture_id: int):  # noqa: ANN001
        row = await conn.execute("SELECT * FROM lectures WHERE id = ?", (lecture_id,))
        found = await row.fetchone()
        if not found:
            raise NotFound(f"Lecture {lecture_id} not found")
        return found
