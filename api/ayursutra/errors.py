"""Failure taxonomy for the assistant.

Capability errors (voice capture, speech output) are shown to the patient
as transient notices. Exchange errors (translation, generation) are caught
by the conversation orchestrator and replaced by a fallback reply.
"""


class AssistantError(Exception):
    pass


class CapabilityUnavailable(AssistantError):
    """The platform capability (recognition or synthesis) is not present."""


class Unsupported(AssistantError):
    """A capability rejected the requested language or dialect."""

    def __init__(self, message: str, language: str | None = None):
        super().__init__(message)
        self.language = language


class LanguageNotSupported(Unsupported):
    def __init__(self, language: str):
        super().__init__(
            f"Sorry, the selected language ({language}) is not supported for "
            "voice input. Please try English or check if the language pack "
            "is installed on your system.",
            language=language,
        )


class RecognitionError(AssistantError):
    pass


class CapturedEmpty(AssistantError):
    """Recognition ended without detecting any speech."""


class TranslationFailed(AssistantError):
    pass


class TransportError(AssistantError):
    """Network failure or timeout while calling an external service."""


class ProviderError(AssistantError):
    def __init__(self, message: str, status_code: int | None = None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class EmptyResponse(AssistantError):
    """The provider answered but the response carried no usable text."""
