"""Shared error codes and user-facing messages."""

from __future__ import annotations

CAPTURE_ERROR = "CAPTURE_ERROR"
TRANSCRIBE_ERROR = "TRANSCRIBE_ERROR"
LLM_ERROR = "LLM_ERROR"
AUTH_FAILED = "AUTH_FAILED"
NETWORK_ERROR = "NETWORK_ERROR"
INJECT_ERROR = "INJECT_ERROR"
DEPENDENCY_MISSING = "DEPENDENCY_MISSING"

ERROR_MESSAGES = {
    CAPTURE_ERROR: "Microphone capture failed, check input device permissions.",
    TRANSCRIBE_ERROR: "Speech could not be transcribed.",
    LLM_ERROR: "Language model returned an invalid response.",
    AUTH_FAILED: "API key is invalid.",
    NETWORK_ERROR: "Network failed, please retry.",
    INJECT_ERROR: "Keystrokes could not be sent, check accessibility permissions.",
    DEPENDENCY_MISSING: "A required package is not installed.",
}


class ServiceError(RuntimeError):
    def __init__(self, code: str, message: str = "", retryable: bool = False) -> None:
        super().__init__(f"{code}: {message or ERROR_MESSAGES.get(code, '')}")
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "")
        self.retryable = retryable


def classify_exception(exc: Exception, default_code: str) -> ServiceError:
    """Map an SDK/network exception to a ServiceError."""
    if isinstance(exc, ServiceError):
        return exc
    message = str(exc)
    low = message.lower()
    if "401" in low or "auth" in low or "api key" in low:
        return ServiceError(AUTH_FAILED, message, retryable=False)
    if "timeout" in low or "network" in low or "connection" in low:
        return ServiceError(NETWORK_ERROR, message, retryable=True)
    return ServiceError(default_code, message, retryable=True)
