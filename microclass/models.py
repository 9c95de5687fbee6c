from dataclasses import dataclass, field
from enum import Enum


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    COMPLETED = "completed"


class Language(str, Enum):
    ENGLISH = "en-US"
    HEBREW = "he-IL"

    @property
    def display_name(self) -> str:
        return "English" if self is Language.ENGLISH else "עברית"

    @property
    def whisper_code(self) -> str:
        """Short language code understood by faster-whisper."""
        return self.value.split("-")[0]


CLASS_COLORS = ("pink", "blue", "green", "orange", "yellow", "red", "purple", "teal")


@dataclass
class RecognitionSegment:
    text: str
    start: float = 0.0
    end: float = 0.0
    confidence: float | None = None


@dataclass
class RecognitionResult:
    """One incremental update: the full current best transcription of a stream."""

    segments: list[RecognitionSegment]
    is_final: bool = False


@dataclass
class Lecture:
    id: int
    class_id: int
    title: str
    transcript: str
    audio_file_name: str
    duration_seconds: float
    created_at: str
    summary: str | None = None

    @property
    def formatted_duration(self) -> str:
        minutes, seconds = divmod(int(self.duration_seconds), 60)
        return f"{minutes}:{seconds:02d}"


@dataclass
class StudyClass:
    id: int
    name: str
    color: str
    created_at: str
    lectures: list[Lecture] = field(default_factory=list)
