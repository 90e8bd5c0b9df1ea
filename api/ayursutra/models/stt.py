import logging

import numpy as np
import torch
from transformers import WhisperForConditionalGeneration, WhisperProcessor

from ayursutra.config import settings
from ayursutra.models.model_manager import model_manager

logger = logging.getLogger("ayursutra")


class WhisperSTT:
    def __init__(self, processor, model, device: str):
        self.processor = processor
        self.model = model
        self.device = device

    def transcribe(self, audio: np.ndarray, language: str) -> str:
        """Transcribe 16kHz mono float32 audio spoken in ``language``.

        ``language`` is a Whisper language code (``en``, ``hi``, ``mr``...).
        Returns the best hypothesis only; there are no partial results.
        """
        logger.debug("[STT] Input audio: %d samples, lang=%s", len(audio), language)

        inputs = self.processor(audio, sampling_rate=16000, return_tensors="pt")
        input_features = inputs.input_features.to(
            device=self.device, dtype=self.model.dtype
        )

        with torch.no_grad():
            predicted_ids = self.model.generate(
                input_features,
                language=language,
                task="transcribe",
                max_new_tokens=128,
            )

        text = self.processor.batch_decode(
            predicted_ids, skip_special_tokens=True
        )[0].strip()
        logger.info("[STT] Text: '%s'", text)
        return text


def load_stt() -> WhisperSTT:
    logger.info("Loading Whisper STT: %s", settings.whisper_model_id)
    device = model_manager.device

    processor = WhisperProcessor.from_pretrained(settings.whisper_model_id)
    model = WhisperForConditionalGeneration.from_pretrained(
        settings.whisper_model_id,
        torch_dtype=torch.float16 if device == "cuda" else torch.float32,
    ).to(device)
    model.eval()

    return WhisperSTT(processor, model, device)
