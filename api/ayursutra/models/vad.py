import logging

import numpy as np
import torch

logger = logging.getLogger("ayursutra")


class SileroVAD:
    SAMPLE_RATE = 16000
    WINDOW = 512

    def __init__(self, model, threshold: float = 0.5):
        self.model = model
        self._threshold = threshold

    def is_speech(self, audio_chunk: np.ndarray) -> bool:
        """Check if a chunk contains speech, scanning it in 512-sample windows."""
        if len(audio_chunk) < self.WINDOW:
            return False
        max_conf = 0.0
        for start in range(0, len(audio_chunk) - self.WINDOW + 1, self.WINDOW):
            window = torch.from_numpy(audio_chunk[start:start + self.WINDOW].copy()).float()
            conf = self.model(window, self.SAMPLE_RATE).item()
            if conf > max_conf:
                max_conf = conf
        return max_conf > self._threshold


def load_vad() -> SileroVAD:
    logger.info("Loading Silero VAD v5")
    model, _utils = torch.hub.load(
        repo_or_dir="snakers4/silero-vad",
        model="silero_vad",
        force_reload=False,
        onnx=False,
        trust_repo=True,
    )
    return SileroVAD(model)
