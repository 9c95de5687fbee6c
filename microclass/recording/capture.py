import logging
import os
import threading

import numpy as np
import sounddevice as sd
import soundfile as sf

from microclass.config import settings
from microclass.errors import CaptureFailure, PermissionDenied
from microclass.protocols import FrameCallback

logger = logging.getLogger(__name__)


class SoundDeviceCapture:
    """Microphone capture that records to a WAV file and fans frames out.

    Threading model:

    1. **Audio callback**: runs in sounddevice's internal C audio thread.
       Writes the frame to the open ``SoundFile`` and hands a copy to
       ``on_frame``.  The controller's ``on_frame`` computes the frame level and
       marshals both onto the event loop with ``call_soon_threadsafe``.

    2. **Event loop**: everything else (``start``/``pause``/``resume``/
       ``stop``) is called from the controller's loop.

    Pausing stops the PortAudio stream but keeps the recording file open, so
    resuming continues the same file without losing what was already written.
    """

    def __init__(
        self,
        sample_rate: int | None = None,
        channels: int | None = None,
        blocksize: int | None = None,
        device: int | str | None = None,
    ) -> None:
        self.sample_rate = sample_rate or settings.sample_rate
        self.channels = channels or settings.channels
        self.blocksize = blocksize or settings.blocksize
        self.device = device

        self._lock = threading.Lock()
        self._stream: sd.InputStream | None = None
        self._file: sf.SoundFile | None = None
        self._on_frame: FrameCallback | None = None
        self._paused = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._stream is not None and not self._paused

    def check_permission(self) -> None:
        """Raise ``PermissionDenied`` when no usable input device is visible."""
        try:
            sd.query_devices(self.device, kind="input")
        except (ValueError, sd.PortAudioError) as e:
            raise PermissionDenied(f"Microphone unavailable: {e}") from e

    def start(self, path: str, on_frame: FrameCallback) -> None:
        """Open the recording file and the microphone stream."""
        if self._stream is not None or self._file is not None:
            raise CaptureFailure("Capture already started; stop it first.")

        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        try:
            self._file = sf.SoundFile(
                path,
                mode="w",
                samplerate=self.sample_rate,
                channels=self.channels,
                subtype="PCM_16",
            )
            self._on_frame = on_frame
            self._stream = self._open_stream()
            self._stream.start()
        except (sd.PortAudioError, RuntimeError, OSError) as e:
            self._release()
            raise CaptureFailure(f"Audio input failed to start: {e}") from e
        self._paused = False
        logger.info("Capture started -> %s", path)

    def pause(self) -> None:
        if self._stream is None or self._paused:
            return
        self._stream.stop()
        self._paused = True

    def resume(self) -> None:
        if self._stream is None:
            raise CaptureFailure("Capture was never started.")
        if not self._paused:
            return
        try:
            self._stream.start()
        except sd.PortAudioError as e:
            raise CaptureFailure(f"Audio input failed to resume: {e}") from e
        self._paused = False

    def stop(self) -> None:
        """Stop the stream and close the recording file. Safe to call twice."""
        self._release()
        logger.info("Capture stopped")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open_stream(self) -> sd.InputStream:
        return sd.InputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype="float32",
            blocksize=self.blocksize,
            device=self.device,
            callback=self._audio_callback,
        )

    def _audio_callback(
        self,
        indata: np.ndarray,
        frames: int,
        timeinfo,  # noqa: ANN001
        status: sd.CallbackFlags,
    ) -> None:
        """sounddevice callback.  Must be fast: file write and hand-off only."""
        frame = indata.copy()
        with self._lock:
            if self._file is not None:
                self._file.write(frame)
            on_frame = self._on_frame
        if on_frame is not None:
            on_frame(frame)

    def _release(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except sd.PortAudioError:
                logger.warning("Audio stream did not close cleanly", exc_info=True)
        with self._lock:
            audio_file, self._file = self._file, None
            self._on_frame = None
        if audio_file is not None:
            audio_file.close()
        self._paused = False
