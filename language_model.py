"""Chat model adapter using DashScope text generation."""

from __future__ import annotations

import logging
import os
from typing import Sequence

from errors import AUTH_FAILED, DEPENDENCY_MISSING, LLM_ERROR, ServiceError, classify_exception
from models import ChatMessage
from transcriber import check_status, extract_text

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

log = logging.getLogger(__name__)


class DashscopeChatModel:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen-plus",
        request_timeout_s: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s

    def _resolved_key(self) -> str:
        return self._api_key or os.getenv("DASHSCOPE_API_KEY", "")

    def ensure_ready(self) -> None:
        if dashscope is None:
            raise ServiceError(DEPENDENCY_MISSING, "dashscope is not installed")
        if not self._resolved_key():
            raise ServiceError(AUTH_FAILED, "No API key configured")

    def complete(self, messages: Sequence[ChatMessage]) -> str:
        self.ensure_ready()
        log.debug("Calling %s with %d messages", self._model, len(messages))
        try:
            response = dashscope.Generation.call(
                api_key=self._resolved_key(),
                model=self._model,
                messages=[{"role": m.role, "content": m.content} for m in messages],
                result_format="message",
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            raise classify_exception(exc, LLM_ERROR) from exc

        check_status(response, LLM_ERROR)
        text = extract_text(response)
        if not text:
            raise ServiceError(LLM_ERROR, "empty completion")
        return text
