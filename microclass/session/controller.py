import asyncio
import contextlib
import logging
import os
import time
import uuid
from dataclasses import dataclass
from typing import AsyncIterator, Callable

import numpy as np

from microclass.config import settings
from microclass.errors import InvalidTransition, RecognitionError
from microclass.models import Language, RecognitionResult, SessionState
from microclass.protocols import AudioCapture, RecognitionService
from microclass.recording.audio_utils import compute_audio_level
from microclass.session.assembler import TranscriptAssembler
from microclass.session.silence import SilenceTracker

logger = logging.getLogger(__name__)

Observer = Callable[[dict], None]


# ------------------------------------------------------------------
# Events (single-consumer channel)
# ------------------------------------------------------------------


@dataclass
class LevelSampled:
    level: float
    at: float


@dataclass
class SegmentReceived:
    generation: int
    result: RecognitionResult


@dataclass
class StreamFinalized:
    generation: int


@dataclass
class StreamFailed:
    generation: int
    error: Exception


class SessionController:
    """Owns one live lecture: capture, recognition streams and the transcript.

    Concurrency model:

    1. **Audio callback**: capture's C audio thread.  ``_on_frame`` computes
       the level and marshals the frame onto the event loop with
       ``call_soon_threadsafe``.  Nothing is mutated there.

    2. **Recognition supervisor**: an asyncio task alive only while the
       session is ``recording``.  Opens a recognition stream, forwards its
       results as events, and opens a new stream whenever the current one
       finalizes or fails.

    3. **Event consumer**: the only code that mutates the transcript, the
       silence state and the audio level.  Events are applied in delivery
       order.

    Session operations (``start``/``pause``/``resume``/``finish``) run on the
    loop too, so they never race the consumer.
    """

    def __init__(
        self,
        capture: AudioCapture,
        recognizer: RecognitionService,
        language: Language | None = None,
        clock: Callable[[], float] = time.monotonic,
        temp_root: str | None = None,
        restart_delay_seconds: float | None = None,
    ) -> None:
        self._capture = capture
        self._recognizer = recognizer
        self._clock = clock
        self.temp_root = temp_root or settings.temp_root
        self.restart_delay_seconds = (
            settings.restart_delay_seconds
            if restart_delay_seconds is None
            else restart_delay_seconds
        )

        self.language = language or Language(settings.default_language)
        self.state = SessionState.IDLE
        self.transcript = TranscriptAssembler()
        self.silence = SilenceTracker(self.language, now=clock())
        self.audio_level = 0.0
        self.lecture_text = ""
        self.audio_path: str | None = None

        # Loop-owned plumbing, created on first start()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._events: asyncio.Queue | None = None
        self._consumer: asyncio.Task | None = None
        self._supervisor: asyncio.Task | None = None
        self._stream_audio: asyncio.Queue | None = None
        self._generation = 0

        self._observers: list[Observer] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def is_recording(self) -> bool:
        return self.state in (SessionState.RECORDING, SessionState.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self.state is SessionState.PAUSED

    @property
    def is_lecture_completed(self) -> bool:
        return self.state is SessionState.COMPLETED

    def snapshot(self) -> dict:
        return {
            "session_state": self.state.value,
            "transcript_text": self.transcript.text,
            "audio_level": round(self.audio_level, 4),
            "silence_duration": round(self.silence.silence_duration, 2),
            "is_recording": self.is_recording,
            "is_paused": self.is_paused,
            "is_lecture_completed": self.is_lecture_completed,
            "lecture_text": self.lecture_text,
            "language": self.language.value,
        }

    def subscribe(self, fn: Observer) -> Callable[[], None]:
        """Register *fn* to receive a snapshot after every change.

        Returns a callable that unregisters it.
        """
        self._observers.append(fn)

        def _unsubscribe() -> None:
            if fn in self._observers:
                self._observers.remove(fn)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Begin recording.  Keeps any transcript already on screen."""
        if self.state is SessionState.PAUSED:
            await self.resume()
            return
        if self.state is not SessionState.IDLE:
            raise InvalidTransition(f"Cannot start while {self.state.value}")

        self._ensure_consumer()
        self._capture.check_permission()

        path = os.path.join(self.temp_root, f"{uuid.uuid4().hex}.wav")
        try:
            self._capture.start(path, self._on_frame)
        except Exception:
            self._capture.stop()
            _remove_file(path)
            raise

        if self.audio_path and self.audio_path != path:
            _remove_file(self.audio_path)
        self.audio_path = path
        self.silence.reset(self._clock())
        self.state = SessionState.RECORDING
        logger.info("Session recording (%s)", self.language.value)
        await self._spawn_supervisor()
        self._notify()

    async def pause(self) -> None:
        if self.state is not SessionState.RECORDING:
            raise InvalidTransition(f"Cannot pause while {self.state.value}")
        await self._quiesce()
        self.state = SessionState.PAUSED
        self._capture.pause()
        logger.info("Session paused")
        self._notify()

    async def resume(self) -> None:
        if self.state is not SessionState.PAUSED:
            raise InvalidTransition(f"Cannot resume while {self.state.value}")
        self._capture.resume()
        self.state = SessionState.RECORDING
        logger.info("Session resumed")
        await self._spawn_supervisor()
        self._notify()

    async def toggle_pause(self) -> None:
        if self.state is SessionState.RECORDING:
            await self.pause()
        else:
            await self.resume()

    async def stop(self) -> None:
        """Stop capturing but keep the draft; a later start() appends to it."""
        if not self.is_recording:
            raise InvalidTransition(f"Cannot stop while {self.state.value}")
        await self._quiesce()
        self.state = SessionState.IDLE
        await self._release()
        logger.info("Session stopped, draft kept (%d chars)", len(self.transcript))
        self._notify()

    async def finish(self) -> str:
        """Freeze the transcript as the lecture text and release every resource."""
        if not self.is_recording:
            raise InvalidTransition(f"Cannot finish while {self.state.value}")
        await self._quiesce()
        self.lecture_text = self.transcript.text
        self.state = SessionState.COMPLETED
        await self._release()
        logger.info("Lecture completed (%d chars)", len(self.lecture_text))
        self._notify()
        return self.lecture_text

    def start_new_lecture(self) -> None:
        """Drop the finished lecture (or idle draft) and its temporary audio."""
        if self.is_recording:
            raise InvalidTransition(f"Cannot reset while {self.state.value}")
        self.transcript.clear()
        self.lecture_text = ""
        self.audio_level = 0.0
        if self.audio_path:
            _remove_file(self.audio_path)
        self.audio_path = None
        self.silence.reset(self._clock())
        self.state = SessionState.IDLE
        self._notify()

    def clear_text(self) -> None:
        if self.state is not SessionState.IDLE:
            raise InvalidTransition(f"Cannot clear text while {self.state.value}")
        self.transcript.clear()
        self._notify()

    def change_language(self, language: Language) -> None:
        if self.is_recording:
            raise InvalidTransition("Cannot change language while recording")
        self.language = language
        self.silence.language = language
        self.silence.reset(self._clock())
        self._notify()

    async def wait_until_processed(self) -> None:
        """Block until every event delivered so far has been applied."""
        if self._loop is not None:
            # Let pending call_soon_threadsafe hand-offs land in the queue
            await asyncio.sleep(0)
        if self._events is not None:
            await self._events.join()

    async def close(self) -> None:
        """Release everything; used at application shutdown."""
        await self._release()
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

    # ------------------------------------------------------------------
    # Audio callback: capture thread
    # ------------------------------------------------------------------

    def _on_frame(self, frame: np.ndarray) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        event = LevelSampled(level=compute_audio_level(frame), at=self._clock())
        loop.call_soon_threadsafe(self._deliver_frame, event, frame)

    # ------------------------------------------------------------------
    # Event loop side
    # ------------------------------------------------------------------

    def _deliver_frame(self, event: LevelSampled, frame: np.ndarray) -> None:
        self._events.put_nowait(event)
        if self._stream_audio is not None:
            self._stream_audio.put_nowait(frame)

    def _ensure_consumer(self) -> None:
        if self._consumer is not None and not self._consumer.done():
            return
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume_events())

    async def _consume_events(self) -> None:
        while True:
            event = await self._events.get()
            try:
                self._apply(event)
            except Exception:
                logger.exception("Failed to apply %s", type(event).__name__)
            finally:
                self._events.task_done()

    def _apply(self, event) -> None:  # noqa: ANN001
        if isinstance(event, LevelSampled):
            if self.state is not SessionState.RECORDING:
                return
            self.audio_level = event.level
            self.silence.observe(event.level, event.at, self.transcript)
            self._notify()
        elif isinstance(event, SegmentReceived):
            if event.generation != self._generation:
                return
            if self.state is not SessionState.RECORDING:
                return
            if self.transcript.merge(event.result):
                self._notify()
        elif isinstance(event, StreamFinalized):
            logger.debug("Recognition stream %d finalized", event.generation)
        elif isinstance(event, StreamFailed):
            logger.warning(
                "Recognition stream %d failed: %s", event.generation, event.error
            )

    # ------------------------------------------------------------------
    # Recognition supervision
    # ------------------------------------------------------------------

    async def _spawn_supervisor(self) -> None:
        await self._cancel_supervisor()
        self._generation += 1
        self._supervisor = asyncio.create_task(
            self._supervise_recognition(self._generation)
        )

    async def _cancel_supervisor(self) -> None:
        task, self._supervisor = self._supervisor, None
        self._close_stream_audio()
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _quiesce(self) -> None:
        """Close recognition and apply every event it already delivered."""
        await self._cancel_supervisor()
        await self.wait_until_processed()

    async def _supervise_recognition(self, generation: int) -> None:
        """Keep exactly one recognition stream open while recording."""
        first_stream = True
        while self.state is SessionState.RECORDING and generation == self._generation:
            audio: asyncio.Queue = asyncio.Queue()
            self._stream_audio = audio
            delay = 0.0
            try:
                async with contextlib.aclosing(
                    self._recognizer.recognize(_drain(audio), self.language)
                ) as results:
                    async for result in results:
                        await self._events.put(SegmentReceived(generation, result))
                        if result.is_final:
                            break
                await self._events.put(StreamFinalized(generation))
            except Exception as e:
                error = e if isinstance(e, RecognitionError) else RecognitionError(str(e))
                await self._events.put(StreamFailed(generation, error))
                if not first_stream:
                    delay = self.restart_delay_seconds
            finally:
                if self._stream_audio is audio:
                    self._close_stream_audio()
            first_stream = False
            await asyncio.sleep(delay)

    def _close_stream_audio(self) -> None:
        audio, self._stream_audio = self._stream_audio, None
        if audio is not None:
            audio.put_nowait(None)

    async def _release(self) -> None:
        try:
            await self._cancel_supervisor()
        finally:
            self._capture.stop()
        self.audio_level = 0.0

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for fn in list(self._observers):
            try:
                fn(snapshot)
            except Exception:
                logger.exception("Session observer failed")


async def _drain(audio: asyncio.Queue) -> AsyncIterator[np.ndarray]:
    while True:
        frame = await audio.get()
        if frame is None:
            return
        yield frame


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
