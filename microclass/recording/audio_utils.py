import numpy as np
import soundfile as sf

from microclass.config import settings


def compute_audio_level(samples: np.ndarray, gain: float | None = None) -> float:
    """Normalized level of one capture frame, in [0, 1].

    Mean absolute amplitude scaled by *gain* (``settings.level_gain``) and
    clamped to 1.0.  Pure function: runs once per captured frame.
    """
    frame = np.asarray(samples, dtype=np.float64).ravel()
    if frame.size == 0:
        return 0.0
    # Clipped or corrupt samples count as full scale
    frame = np.nan_to_num(frame, nan=1.0, posinf=1.0, neginf=-1.0)
    with np.errstate(over="ignore"):
        average = float(np.mean(np.abs(frame)))
    level = average * (settings.level_gain if gain is None else gain)
    return min(max(level, 0.0), 1.0)


def is_speech(level: float, threshold: float | None = None) -> bool:
    return level > (settings.speech_threshold if threshold is None else threshold)


def wav_duration_seconds(path: str) -> float:
    info = sf.info(path)
    return info.frames / info.samplerate if info.samplerate else 0.0
