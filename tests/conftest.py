"""Shared doubles for the session controller tests."""

import asyncio
import os

import numpy as np
import pytest
import soundfile as sf

from microclass.errors import CaptureFailure
from microclass.models import RecognitionResult, RecognitionSegment


def result(*words: str, final: bool = False) -> RecognitionResult:
    return RecognitionResult(
        segments=[RecognitionSegment(text=w) for w in words], is_final=final
    )


SPEECH = np.full(1024, 0.5, dtype=np.float32)
SILENCE = np.zeros(1024, dtype=np.float32)


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeCapture:
    """In-memory AudioCapture that writes a short WAV so storage can import it."""

    def __init__(self) -> None:
        self.permission_error: Exception | None = None
        self.start_error: Exception | None = None
        self.resume_error: Exception | None = None
        self.on_frame = None
        self.last_on_frame = None
        self.paused = False
        self.calls: list[str] = []

    def check_permission(self) -> None:
        self.calls.append("check_permission")
        if self.permission_error is not None:
            raise self.permission_error

    def start(self, path: str, on_frame) -> None:  # noqa: ANN001
        self.calls.append("start")
        if self.start_error is not None:
            raise self.start_error
        os.makedirs(os.path.dirname(path), exist_ok=True)
        sf.write(path, np.zeros(1600, dtype=np.float32), 16000, subtype="PCM_16")
        self.on_frame = self.last_on_frame = on_frame
        self.paused = False

    def pause(self) -> None:
        self.calls.append("pause")
        self.paused = True

    def resume(self) -> None:
        self.calls.append("resume")
        if self.resume_error is not None:
            raise self.resume_error
        if self.on_frame is None:
            raise CaptureFailure("not started")
        self.paused = False

    def stop(self) -> None:
        self.calls.append("stop")
        self.on_frame = None
        self.paused = False

    def emit(self, frame: np.ndarray) -> None:
        """Deliver a frame the way the audio thread would."""
        if self.on_frame is not None and not self.paused:
            self.on_frame(frame)


class ScriptedRecognizer:
    """Recognition service fed by the test through ``push``.

    Pushed exceptions are raised from the currently open stream.
    """

    def __init__(self) -> None:
        self.calls = 0
        self.languages = []
        self._items: asyncio.Queue | None = None

    @property
    def items(self) -> asyncio.Queue:
        if self._items is None:
            self._items = asyncio.Queue()
        return self._items

    def push(self, item) -> None:  # noqa: ANN001
        self.items.put_nowait(item)

    async def recognize(self, frames, language):  # noqa: ANN001
        self.calls += 1
        self.languages.append(language)
        while True:
            item = await self.items.get()
            if isinstance(item, Exception):
                raise item
            yield item
            if item.is_final:
                return


async def settle(controller, rounds: int = 20) -> None:  # noqa: ANN001
    """Let hand-offs, the supervisor and the event consumer run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
    await controller.wait_until_processed()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def recognizer():
    return ScriptedRecognizer()
