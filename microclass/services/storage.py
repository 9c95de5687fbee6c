import logging
import os
import shutil
import uuid

from microclass.config import settings
from microclass.errors import PersistenceFailure
from microclass.recording.audio_utils import wav_duration_seconds

logger = logging.getLogger(__name__)


class StorageService:
    """Audio files of saved lectures, kept flat under ``audio_root``."""

    def __init__(self, audio_root: str | None = None) -> None:
        self.audio_root = audio_root or settings.audio_root

    def audio_path(self, audio_file_name: str) -> str:
        return os.path.join(self.audio_root, audio_file_name)

    def import_audio(self, temp_path: str) -> tuple[str, float]:
        """Move a finished recording into permanent storage.

        Returns ``(audio_file_name, duration_seconds)``.
        """
        if not os.path.exists(temp_path):
            raise PersistenceFailure(f"Recording not found: {temp_path}")
        os.makedirs(self.audio_root, exist_ok=True)
        extension = os.path.splitext(temp_path)[1] or ".wav"
        file_name = f"{uuid.uuid4().hex}{extension}"
        try:
            duration = wav_duration_seconds(temp_path)
            shutil.move(temp_path, self.audio_path(file_name))
        except (OSError, RuntimeError) as e:
            raise PersistenceFailure(f"Failed to store audio: {e}") from e
        return file_name, duration

    def restore_audio(self, audio_file_name: str, temp_path: str) -> None:
        """Undo ``import_audio`` when the lecture row could not be written."""
        try:
            shutil.move(self.audio_path(audio_file_name), temp_path)
        except OSError as e:
            raise PersistenceFailure(f"Failed to restore recording: {e}") from e

    def delete_audio(self, audio_file_name: str) -> None:
        try:
            os.remove(self.audio_path(audio_file_name))
        except FileNotFoundError:
            logger.warning("Audio file already gone: %s", audio_file_name)
        except OSError as e:
            raise PersistenceFailure(f"Failed to delete audio: {e}") from e
