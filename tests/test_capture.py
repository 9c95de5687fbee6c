"""Tests for the sounddevice capture backend, with PortAudio mocked out."""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import soundfile as sf

try:
    import sounddevice as sd
except OSError:  # PortAudio shared library missing on this machine
    pytest.skip("PortAudio not available", allow_module_level=True)

from microclass.errors import CaptureFailure, PermissionDenied  # noqa: E402
from microclass.recording.capture import SoundDeviceCapture  # noqa: E402


@pytest.fixture
def stream():
    with patch("microclass.recording.capture.sd.InputStream") as input_stream:
        yield input_stream.return_value


class TestLifecycle:
    def test_frames_written_and_forwarded(self, tmp_path, stream):
        path = str(tmp_path / "rec" / "a.wav")
        received = []
        capture = SoundDeviceCapture(sample_rate=16000, channels=1, blocksize=1024)
        capture.start(path, received.append)
        assert capture.is_active
        stream.start.assert_called_once()

        frame = np.full((1024, 1), 0.25, dtype=np.float32)
        capture._audio_callback(frame, 1024, None, sd.CallbackFlags())
        capture._audio_callback(frame, 1024, None, sd.CallbackFlags())
        capture.stop()

        assert len(received) == 2
        assert received[0] is not frame
        assert sf.info(path).frames == 2048
        stream.close.assert_called_once()

    def test_pause_keeps_file_open(self, tmp_path, stream):
        path = str(tmp_path / "a.wav")
        capture = SoundDeviceCapture(sample_rate=16000)
        capture.start(path, lambda _frame: None)
        frame = np.zeros((512, 1), dtype=np.float32)

        capture._audio_callback(frame, 512, None, sd.CallbackFlags())
        capture.pause()
        assert not capture.is_active
        capture.resume()
        capture._audio_callback(frame, 512, None, sd.CallbackFlags())
        capture.stop()

        assert stream.start.call_count == 2
        assert sf.info(path).frames == 1024

    def test_stop_is_idempotent(self, tmp_path, stream):
        capture = SoundDeviceCapture()
        capture.start(str(tmp_path / "a.wav"), lambda _frame: None)
        capture.stop()
        capture.stop()
        assert not capture.is_active

    def test_double_start_rejected(self, tmp_path, stream):
        capture = SoundDeviceCapture()
        capture.start(str(tmp_path / "a.wav"), lambda _frame: None)
        with pytest.raises(CaptureFailure):
            capture.start(str(tmp_path / "b.wav"), lambda _frame: None)
        capture.stop()

    def test_resume_without_start(self):
        with pytest.raises(CaptureFailure):
            SoundDeviceCapture().resume()


class TestFailures:
    def test_stream_failure_becomes_capture_failure(self, tmp_path, stream):
        stream.start.side_effect = sd.PortAudioError("device busy")
        capture = SoundDeviceCapture()
        with pytest.raises(CaptureFailure):
            capture.start(str(tmp_path / "a.wav"), lambda _frame: None)
        assert not capture.is_active
        stream.close.assert_called_once()

    def test_no_input_device_is_permission_denied(self):
        with patch(
            "microclass.recording.capture.sd.query_devices",
            side_effect=sd.PortAudioError("no input"),
        ):
            with pytest.raises(PermissionDenied):
                SoundDeviceCapture().check_permission()

    def test_input_device_present(self):
        with patch(
            "microclass.recording.capture.sd.query_devices",
            return_value=MagicMock(),
        ):
            SoundDeviceCapture().check_permission()
