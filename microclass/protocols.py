from typing import AsyncIterator, Callable, Protocol

import numpy as np

from microclass.models import Language, RecognitionResult

FrameCallback = Callable[[np.ndarray], None]


class AudioCapture(Protocol):
    """What the session controller needs from an audio input backend.

    ``start`` may raise ``PermissionDenied`` or ``CaptureFailure``.  ``pause``
    and ``resume`` must keep appending to the same recording file; ``stop``
    must be safe to call at any time, including after a failed ``start``.
    """

    def check_permission(self) -> None: ...

    def start(self, path: str, on_frame: FrameCallback) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...


class RecognitionService(Protocol):
    """One ``recognize`` call is one recognition stream.

    Each yielded result holds the whole current best transcription of that
    stream.  After a result with ``is_final`` the stream emits nothing more.
    Failures raise ``RecognitionError``.
    """

    def recognize(
        self, frames: AsyncIterator[np.ndarray], language: Language
    ) -> AsyncIterator[RecognitionResult]: ...
