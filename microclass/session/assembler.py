from microclass.models import RecognitionResult

PARAGRAPH_BREAK = "\n\n"
SENTENCE_TERMINATORS = ".?!־–—"


class TranscriptAssembler:
    """Append-only transcript buffer fed by incremental recognition results.

    Each result carries the recognizer's whole current transcription; only
    its last segment is appended.  Text already committed is never edited,
    even when the recognizer later revises it.
    """

    def __init__(self, text: str = "") -> None:
        self._text = text

    @property
    def text(self) -> str:
        return self._text

    def __len__(self) -> int:
        return len(self._text)

    def is_empty(self) -> bool:
        return not self._text

    def ends_with(self, suffix: str) -> bool:
        return self._text.endswith(suffix)

    def trimmed(self) -> str:
        return self._text.strip()

    def merge(self, result: RecognitionResult) -> bool:
        """Append the newest segment of *result*. Returns True if text changed."""
        if not result.segments:
            return False
        return self.merge_text(result.segments[-1].text)

    def merge_text(self, segment_text: str) -> bool:
        new_text = segment_text.strip()
        if not new_text:
            return False

        candidate = f" {new_text}" if self._text else new_text
        if self._text.endswith(candidate):
            # Recognizers redeliver the same final segment
            return False

        if self._text and not self._text[-1].isspace():
            self._append(" " + new_text)
        else:
            self._append(new_text)
        return True

    def append_raw(self, text: str) -> None:
        """Append punctuation or breaks verbatim."""
        if text:
            self._append(text)

    def terminate_sentence(self) -> None:
        """Add a period unless the text already ends a sentence. No-op when blank."""
        trimmed = self.trimmed()
        if trimmed and trimmed[-1] not in SENTENCE_TERMINATORS:
            self._append(".")

    def clear(self) -> None:
        self._text = ""

    def _append(self, text: str) -> None:
        self._text += text
