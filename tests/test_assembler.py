"""Tests for the append-only transcript assembler."""

from microclass.models import RecognitionResult
from microclass.session.assembler import TranscriptAssembler

from conftest import result


class TestMerge:
    def test_first_segment_appended_as_is(self):
        t = TranscriptAssembler()
        assert t.merge(result("hello"))
        assert t.text == "hello"

    def test_only_last_segment_is_used(self):
        """Earlier segments are already on screen and never re-appended."""
        t = TranscriptAssembler()
        t.merge(result("hello"))
        t.merge(result("hello", "world"))
        assert t.text == "hello world"

    def test_revised_earlier_segments_are_ignored(self):
        t = TranscriptAssembler()
        t.merge(result("hallo"))
        t.merge(result("hello", "world"))
        assert t.text == "hallo world"

    def test_segment_is_trimmed(self):
        t = TranscriptAssembler()
        t.merge(result("  hello \n"))
        assert t.text == "hello"

    def test_empty_and_whitespace_segments_are_noops(self):
        t = TranscriptAssembler("hello")
        assert not t.merge(result("   "))
        assert not t.merge(RecognitionResult(segments=[]))
        assert t.text == "hello"

    def test_duplicate_final_segment_suppressed(self):
        t = TranscriptAssembler("hi")
        t.merge(result("hello", "world", final=True))
        assert not t.merge(result("hello", "world", final=True))
        assert t.text == "hi world"

    def test_duplicate_after_existing_text(self):
        t = TranscriptAssembler("one two")
        assert not t.merge(result("two"))
        assert t.text == "one two"

    def test_no_extra_space_after_whitespace(self):
        t = TranscriptAssembler("hello.\n\n")
        t.merge(result("world"))
        assert t.text == "hello.\n\nworld"

    def test_space_inserted_after_punctuation(self):
        t = TranscriptAssembler("hello.")
        t.merge(result("world"))
        assert t.text == "hello. world"

    def test_length_never_decreases(self):
        t = TranscriptAssembler()
        lengths = []
        for words in (["a"], ["a", "b"], ["x"], ["x"], [""], ["a", "b", "c"], ["c"]):
            t.merge(result(*words))
            lengths.append(len(t))
        assert lengths == sorted(lengths)


class TestHelpers:
    def test_terminate_sentence_adds_period(self):
        t = TranscriptAssembler("hello")
        t.terminate_sentence()
        assert t.text == "hello."

    def test_terminate_sentence_respects_existing_terminators(self):
        for terminator in ".?!־–—":
            t = TranscriptAssembler(f"hello{terminator}  ")
            t.terminate_sentence()
            assert t.text == f"hello{terminator}  "

    def test_terminate_sentence_on_blank_text(self):
        t = TranscriptAssembler("  ")
        t.terminate_sentence()
        assert t.text == "  "

    def test_clear(self):
        t = TranscriptAssembler("hello")
        t.clear()
        assert t.is_empty()
        assert t.text == ""
