import asyncio
import logging
from typing import AsyncIterator

import numpy as np
from faster_whisper import WhisperModel

from microclass.config import settings
from microclass.errors import RecognitionError
from microclass.models import Language, RecognitionResult, RecognitionSegment

logger = logging.getLogger(__name__)


class WhisperRecognitionService:
    """Streaming recognition on top of faster-whisper.

    One call to ``recognize`` is one recognition stream.  Audio is buffered
    and the growing window is re-decoded every ``partial_interval_seconds``;
    every newly decoded word is reported as its own incremental result whose
    segments are the words decoded so far.  When the window reaches
    ``recognition_window_seconds`` (or the frame source closes) the last
    result is marked final and the stream ends, so the caller has to open a
    new one to keep listening.

    The model is downloaded and loaded on the first decode, not at import
    time or server startup.
    """

    _model: WhisperModel | None = None

    def __init__(
        self,
        sample_rate: int | None = None,
        window_seconds: float | None = None,
        partial_interval_seconds: float | None = None,
    ) -> None:
        self.sample_rate = sample_rate or settings.sample_rate
        self.window_samples = int(
            self.sample_rate * (window_seconds or settings.recognition_window_seconds)
        )
        self.step_samples = int(
            self.sample_rate
            * (partial_interval_seconds or settings.partial_interval_seconds)
        )

    @classmethod
    def model(cls) -> WhisperModel:
        if cls._model is None:
            logger.info("Loading Whisper model %s", settings.whisper_model)
            cls._model = WhisperModel(
                settings.whisper_model,
                device=settings.whisper_device,
                compute_type=settings.whisper_compute_type,
            )
        return cls._model

    async def recognize(
        self, frames: AsyncIterator[np.ndarray], language: Language
    ) -> AsyncIterator[RecognitionResult]:
        chunks: list[np.ndarray] = []
        total = 0
        decoded_at = 0
        emitted = 0

        async for frame in frames:
            mono = frame.mean(axis=1) if frame.ndim > 1 else frame
            chunks.append(mono.astype(np.float32, copy=False))
            total += len(mono)
            if total - decoded_at < self.step_samples and total < self.window_samples:
                continue

            final = total >= self.window_samples
            words = await self._decode(np.concatenate(chunks), language)
            decoded_at = total
            for result in _incremental_results(words, emitted, final):
                yield result
            emitted = max(emitted, len(words))
            if final:
                return

        # Frame source closed before the window filled up
        words = (
            await self._decode(np.concatenate(chunks), language)
            if total > decoded_at
            else []
        )
        for result in _incremental_results(words, emitted, True):
            yield result

    async def _decode(
        self, audio: np.ndarray, language: Language
    ) -> list[RecognitionSegment]:
        try:
            return await asyncio.to_thread(self._transcribe_words, audio, language)
        except RecognitionError:
            raise
        except Exception as e:
            raise RecognitionError(f"Whisper decode failed: {e}") from e

    def _transcribe_words(
        self, audio: np.ndarray, language: Language
    ) -> list[RecognitionSegment]:
        """Blocking: always call from a worker thread."""
        segments, _info = self.model().transcribe(
            audio,
            language=language.whisper_code,
            beam_size=5,
            word_timestamps=True,
        )
        # segments is a lazy generator: the comprehension forces evaluation
        return [
            RecognitionSegment(
                text=word.word.strip(),
                start=word.start,
                end=word.end,
                confidence=round(word.probability, 4),
            )
            for seg in segments
            for word in (seg.words or [])
            if word.word.strip()
        ]


def _incremental_results(
    words: list[RecognitionSegment], emitted: int, final: bool
) -> list[RecognitionResult]:
    """One result per word not reported yet; the last one carries *final*."""
    results = [
        RecognitionResult(segments=words[: i + 1])
        for i in range(emitted, len(words))
    ]
    if final:
        if results:
            results[-1].is_final = True
        else:
            results.append(RecognitionResult(segments=[], is_final=True))
    return results
