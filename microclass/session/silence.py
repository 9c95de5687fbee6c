import logging

from microclass.config import settings
from microclass.models import Language
from microclass.recording.audio_utils import is_speech
from microclass.session.assembler import PARAGRAPH_BREAK, TranscriptAssembler

logger = logging.getLogger(__name__)


class SilenceTracker:
    """Turns per-frame audio levels into paragraph breaks.

    The two language policies differ on purpose:

    * Hebrew: after ``hebrew_pause_seconds`` of silence the tracker only
      arms ``waiting_for_resume_punctuation``; the period and paragraph break
      are written when speech resumes.
    * Everything else: after ``paragraph_pause_seconds`` of silence the
      period and paragraph break are written immediately, once per episode.
    """

    def __init__(
        self,
        language: Language,
        now: float = 0.0,
        speech_threshold: float | None = None,
        hebrew_pause_seconds: float | None = None,
        paragraph_pause_seconds: float | None = None,
    ) -> None:
        self.language = language
        self.speech_threshold = (
            settings.speech_threshold if speech_threshold is None else speech_threshold
        )
        self.hebrew_pause_seconds = (
            settings.hebrew_pause_seconds
            if hebrew_pause_seconds is None
            else hebrew_pause_seconds
        )
        self.paragraph_pause_seconds = (
            settings.paragraph_pause_seconds
            if paragraph_pause_seconds is None
            else paragraph_pause_seconds
        )

        self.last_speech_time = now
        self.silence_duration = 0.0
        self.waiting_for_resume_punctuation = False

    def reset(self, now: float) -> None:
        """Restart the silence clock (session start, resume, language change)."""
        self.last_speech_time = now
        self.silence_duration = 0.0
        self.waiting_for_resume_punctuation = False

    def observe(self, level: float, now: float, transcript: TranscriptAssembler) -> None:
        if is_speech(level, self.speech_threshold):
            self._on_speech(now, transcript)
        else:
            self._on_silence(now, transcript)

    def _on_speech(self, now: float, transcript: TranscriptAssembler) -> None:
        if self.waiting_for_resume_punctuation and self.language is Language.HEBREW:
            if transcript.trimmed():
                transcript.terminate_sentence()
                transcript.append_raw(PARAGRAPH_BREAK)
            self.waiting_for_resume_punctuation = False

        self.last_speech_time = now
        self.silence_duration = 0.0

    def _on_silence(self, now: float, transcript: TranscriptAssembler) -> None:
        self.silence_duration = now - self.last_speech_time

        if self.language is Language.HEBREW:
            if (
                self.silence_duration >= self.hebrew_pause_seconds
                and not transcript.is_empty()
                and not self.waiting_for_resume_punctuation
            ):
                self.waiting_for_resume_punctuation = True
            return

        if (
            self.silence_duration >= self.paragraph_pause_seconds
            and not transcript.is_empty()
            and not transcript.ends_with(PARAGRAPH_BREAK)
        ):
            logger.debug("Paragraph break after %.1fs of silence", self.silence_duration)
            transcript.terminate_sentence()
            transcript.append_raw(PARAGRAPH_BREAK)
