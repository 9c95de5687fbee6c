"""Tests for silence-driven paragraph breaks, per language policy."""

from microclass.models import Language
from microclass.session.assembler import TranscriptAssembler
from microclass.session.silence import SilenceTracker

from conftest import result

QUIET = 0.0
LOUD = 0.8


class TestHebrewPolicy:
    def test_deferred_punctuation_on_resume(self):
        """Punctuation waits for speech to resume, then new text follows it."""
        t = TranscriptAssembler("שלום")
        tracker = SilenceTracker(Language.HEBREW, now=0.0)

        tracker.observe(QUIET, 2.0, t)
        assert tracker.waiting_for_resume_punctuation
        assert t.text == "שלום"

        tracker.observe(LOUD, 2.5, t)
        assert not tracker.waiting_for_resume_punctuation
        t.merge(result("עולם"))
        assert t.text == "שלום.\n\nעולם"

    def test_not_armed_before_two_seconds(self):
        t = TranscriptAssembler("שלום")
        tracker = SilenceTracker(Language.HEBREW, now=0.0)
        tracker.observe(QUIET, 1.9, t)
        assert not tracker.waiting_for_resume_punctuation
        tracker.observe(LOUD, 2.0, t)
        assert t.text == "שלום"

    def test_existing_terminator_kept(self):
        t = TranscriptAssembler("שלום?")
        tracker = SilenceTracker(Language.HEBREW, now=0.0)
        tracker.observe(QUIET, 5.0, t)
        tracker.observe(LOUD, 5.1, t)
        assert t.text == "שלום?\n\n"

    def test_empty_transcript_never_arms(self):
        t = TranscriptAssembler()
        tracker = SilenceTracker(Language.HEBREW, now=0.0)
        tracker.observe(QUIET, 10.0, t)
        assert not tracker.waiting_for_resume_punctuation

    def test_single_break_per_episode(self):
        t = TranscriptAssembler("שלום")
        tracker = SilenceTracker(Language.HEBREW, now=0.0)
        for now in (2.0, 3.0, 4.0, 8.0):
            tracker.observe(QUIET, now, t)
        tracker.observe(LOUD, 8.5, t)
        tracker.observe(LOUD, 8.6, t)
        assert t.text == "שלום.\n\n"

    def test_whitespace_only_transcript_clears_flag_without_text(self):
        t = TranscriptAssembler("  ")
        tracker = SilenceTracker(Language.HEBREW, now=0.0)
        tracker.observe(QUIET, 3.0, t)
        tracker.observe(LOUD, 3.1, t)
        assert t.text == "  "
        assert not tracker.waiting_for_resume_punctuation

    def test_hebrew_does_not_break_immediately(self):
        t = TranscriptAssembler("שלום")
        tracker = SilenceTracker(Language.HEBREW, now=0.0)
        tracker.observe(QUIET, 30.0, t)
        assert t.text == "שלום"


class TestEnglishPolicy:
    def test_immediate_break_after_three_seconds(self):
        t = TranscriptAssembler("hello")
        tracker = SilenceTracker(Language.ENGLISH, now=0.0)
        tracker.observe(QUIET, 2.9, t)
        assert t.text == "hello"
        tracker.observe(QUIET, 3.0, t)
        assert t.text == "hello.\n\n"

    def test_idempotent_break(self):
        """Continued silence does not add a second break."""
        t = TranscriptAssembler("hello")
        tracker = SilenceTracker(Language.ENGLISH, now=0.0)
        for now in (3.0, 4.0, 10.0, 60.0):
            tracker.observe(QUIET, now, t)
        assert t.text == "hello.\n\n"

    def test_existing_terminator_kept(self):
        t = TranscriptAssembler("really?")
        tracker = SilenceTracker(Language.ENGLISH, now=0.0)
        tracker.observe(QUIET, 3.5, t)
        assert t.text == "really?\n\n"

    def test_speech_resets_silence(self):
        t = TranscriptAssembler("hello")
        tracker = SilenceTracker(Language.ENGLISH, now=0.0)
        tracker.observe(QUIET, 2.0, t)
        assert tracker.silence_duration == 2.0
        tracker.observe(LOUD, 2.5, t)
        assert tracker.silence_duration == 0.0
        assert tracker.last_speech_time == 2.5
        tracker.observe(QUIET, 5.0, t)
        assert t.text == "hello"

    def test_empty_transcript_untouched(self):
        t = TranscriptAssembler()
        tracker = SilenceTracker(Language.ENGLISH, now=0.0)
        tracker.observe(QUIET, 10.0, t)
        assert t.text == ""

    def test_waiting_flag_ignored_for_english(self):
        t = TranscriptAssembler("hello")
        tracker = SilenceTracker(Language.ENGLISH, now=0.0)
        tracker.waiting_for_resume_punctuation = True
        tracker.observe(LOUD, 1.0, t)
        assert t.text == "hello"


class TestReset:
    def test_reset_restarts_clock(self):
        tracker = SilenceTracker(Language.HEBREW, now=0.0)
        tracker.waiting_for_resume_punctuation = True
        tracker.silence_duration = 4.0
        tracker.reset(100.0)
        assert tracker.last_speech_time == 100.0
        assert tracker.silence_duration == 0.0
        assert not tracker.waiting_for_resume_punctuation
