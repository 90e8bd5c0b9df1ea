import io
import logging

import numpy as np
import soundfile as sf
import torch
from transformers import AutoTokenizer, VitsModel

from ayursutra.models.model_manager import model_manager

logger = logging.getLogger("ayursutra")


class MMSTTS:
    def __init__(self, tokenizer, model, device: str):
        self.tokenizer = tokenizer
        self.model = model
        self.device = device

    def _waveform(self, text: str) -> np.ndarray:
        inputs = self.tokenizer(text, return_tensors="pt").to(self.device)

        with torch.no_grad():
            output = self.model(**inputs)

        return output.waveform[0].cpu().float().numpy()

    def synthesize(self, chunks: list[str]) -> bytes:
        """Synthesize text chunks in order into one WAV clip."""
        waveform = np.concatenate([self._waveform(chunk) for chunk in chunks])
        sr = self.model.config.sampling_rate

        buf = io.BytesIO()
        sf.write(buf, waveform, sr, format="WAV", subtype="PCM_16")
        buf.seek(0)
        return buf.read()


def tts_loader(model_id: str):
    """Build a loader for one MMS-TTS voice, for use with the model manager."""

    def load() -> MMSTTS:
        logger.info("Loading MMS-TTS: %s", model_id)
        device = model_manager.device
        tokenizer = AutoTokenizer.from_pretrained(model_id)
        model = VitsModel.from_pretrained(model_id).to(device)
        model.eval()
        return MMSTTS(tokenizer, model, device)

    return load
