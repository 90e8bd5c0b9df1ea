import base64

import numpy as np

from ayursutra.config import settings

SAMPLE_RATE = 16000


class AudioValidationError(Exception):
    pass


def pcm_bytes_to_float32(data: bytes) -> np.ndarray:
    """Convert raw PCM 16-bit LE bytes to a float32 array in [-1, 1)."""
    if len(data) > settings.upload_max_bytes:
        raise AudioValidationError(
            f"Audio frame exceeds {settings.upload_max_bytes // (1024*1024)} MB limit"
        )
    if len(data) % 2:
        raise AudioValidationError("PCM16 frame has an odd number of bytes")
    return np.frombuffer(data, dtype="<i2").astype(np.float32) / 32768.0


def wav_to_base64(wav: bytes) -> str:
    return base64.b64encode(wav).decode("ascii")


def duration_s(audio: np.ndarray, sr: int = SAMPLE_RATE) -> float:
    return len(audio) / sr
