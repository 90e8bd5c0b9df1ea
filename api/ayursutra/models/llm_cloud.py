import logging
import time

import httpx

from ayursutra.config import settings
from ayursutra.errors import EmptyResponse, ProviderError, TransportError
from ayursutra.middleware.metrics import GENERATION_REQUESTS
from ayursutra.services.safety import DISCLAIMER

logger = logging.getLogger("ayursutra")


def build_system_prompt(
    patient_name: str,
    treatment_plan: list[str],
    goals: list[str],
) -> str:
    """Persona, treatment context and the reply rules sent with every query."""
    if len(treatment_plan) > 1:
        plan = ", ".join(treatment_plan[:-1]) + f", and {treatment_plan[-1]}"
    else:
        plan = "".join(treatment_plan)
    return (
        f'You are "AyurSutra Assistant," a specialized AI for a patient named {patient_name}. '
        "Your purpose is to provide helpful, safe, and supportive guidance based on "
        "Ayurvedic principles in English.\n"
        f"{patient_name}'s current treatment plan includes {plan}.\n"
        f"Their primary goals are {' and '.join(goals)}.\n\n"
        "RULES:\n"
        "1. Always be gentle, empathetic, and encouraging. Your response MUST be in English.\n"
        "2. Crucially, you must ALWAYS include this disclaimer at the end of your "
        f'response: "{DISCLAIMER}"\n'
        "3. Keep responses concise (2-4 sentences)."
    )


def default_system_prompt() -> str:
    return build_system_prompt(
        settings.patient_name, settings.treatment_plan, settings.treatment_goals
    )


class GeminiLLM:
    """Single-turn client for the Gemini ``generateContent`` endpoint.

    No retries: a failed call surfaces as TransportError (network, timeout),
    ProviderError (non-2xx, body included in the message) or EmptyResponse
    (parsed fine but no text in the first candidate).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str,
        base_url: str,
        timeout_s: float,
    ):
        self.client = client
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def generate(self, system_prompt: str, message: str) -> str:
        if not self.api_key:
            GENERATION_REQUESTS.labels(status="unconfigured").inc()
            raise ProviderError("Generation API key is not configured")

        payload = {
            "contents": [{"role": "user", "parts": [{"text": message}]}],
            "systemInstruction": {"parts": [{"text": system_prompt}]},
        }

        start = time.perf_counter()
        try:
            response = await self.client.post(
                self.url,
                json=payload,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout_s,
            )
        except httpx.TimeoutException as e:
            GENERATION_REQUESTS.labels(status="timeout").inc()
            raise TransportError(f"Generation request timed out after {self.timeout_s}s") from e
        except httpx.HTTPError as e:
            GENERATION_REQUESTS.labels(status="transport_error").inc()
            raise TransportError(f"Generation request failed: {e}") from e

        if not response.is_success:
            GENERATION_REQUESTS.labels(status="provider_error").inc()
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise ProviderError(
                f"API error: {response.status_code} {response.reason_phrase} - {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            GENERATION_REQUESTS.labels(status="provider_error").inc()
            raise ProviderError(f"Generation response is not JSON: {e}") from e

        text = _first_candidate_text(data)
        elapsed = (time.perf_counter() - start) * 1000
        if not text or not text.strip():
            GENERATION_REQUESTS.labels(status="empty").inc()
            raise EmptyResponse("Generation response contained no text")

        GENERATION_REQUESTS.labels(status="ok").inc()
        logger.info("[LLM] %s %dms | '%s'", self.model, round(elapsed), text[:100])
        return text.strip()


def _first_candidate_text(data) -> str | None:
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None


def load_llm_cloud(client: httpx.AsyncClient | None = None) -> GeminiLLM:
    logger.info("Initializing Gemini client: %s", settings.gemini_model)
    return GeminiLLM(
        client or httpx.AsyncClient(),
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout_s=settings.generation_timeout_s,
    )
