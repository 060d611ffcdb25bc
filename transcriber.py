"""Speech-to-text adapters.

``DashscopeTranscriber`` sends the whole utterance to qwen3-asr-flash as a
base64 WAV and keeps the last streamed text.  ``WhisperTranscriber`` runs a
faster-whisper model locally on the float samples directly.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import wave
from pathlib import Path
from typing import Any, Optional

from errors import AUTH_FAILED, DEPENDENCY_MISSING, TRANSCRIBE_ERROR, ServiceError, classify_exception

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

try:
    from faster_whisper import WhisperModel
except Exception:  # pragma: no cover
    WhisperModel = None  # type: ignore

log = logging.getLogger(__name__)


def _to_pcm16(samples: Any) -> bytes:
    if np is None:
        raise ServiceError(DEPENDENCY_MISSING, "numpy is not installed")
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (clipped * 32767.0).astype("<i2").tobytes()


def _wav_bytes(samples: Any, sample_rate: int) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(_to_pcm16(samples))
    return buf.getvalue()


def samples_to_wav_base64(samples: Any, sample_rate: int = 16000) -> str:
    """Convert float samples to a base64-encoded 16-bit WAV string."""
    return base64.b64encode(_wav_bytes(samples, sample_rate)).decode("ascii")


def write_wav(path: Path, samples: Any, sample_rate: int = 16000) -> None:
    Path(path).write_bytes(_wav_bytes(samples, sample_rate))


class DashscopeTranscriber:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
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

    def transcribe(self, samples: Any, sample_rate: int = 16000) -> str:
        if len(samples) == 0:
            return ""
        self.ensure_ready()

        wav_b64 = samples_to_wav_base64(samples, sample_rate)
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=self._resolved_key(),
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_b64}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False},
                stream=True,
                timeout=self._request_timeout_s,
            )
            latest_text = ""
            for chunk in response:
                check_status(chunk, TRANSCRIBE_ERROR)
                text = extract_text(chunk)
                if text:
                    latest_text = text
        except Exception as exc:
            raise classify_exception(exc, TRANSCRIBE_ERROR) from exc
        return latest_text


class WhisperTranscriber:
    def __init__(self, model_name: str = "base.en", device: str = "cpu", compute_type: str = "int8") -> None:
        self._model_name = model_name
        self._device = device
        self._compute_type = compute_type
        self._model: Optional[Any] = None

    def ensure_ready(self) -> None:
        if WhisperModel is None:
            raise ServiceError(DEPENDENCY_MISSING, "faster-whisper is not installed")
        if self._model is None:
            log.info("Loading whisper model %s", self._model_name)
            self._model = WhisperModel(self._model_name, device=self._device, compute_type=self._compute_type)

    def transcribe(self, samples: Any, sample_rate: int = 16000) -> str:
        if len(samples) == 0:
            return ""
        if sample_rate != 16000:
            raise ServiceError(TRANSCRIBE_ERROR, f"whisper expects 16000 Hz audio, got {sample_rate}")
        self.ensure_ready()
        try:
            segments, _ = self._model.transcribe(np.asarray(samples, dtype=np.float32), language="en", beam_size=5)
            return "".join(segment.text for segment in segments).strip()
        except Exception as exc:
            raise classify_exception(exc, TRANSCRIBE_ERROR) from exc


def make_transcriber(kind: str, api_key: str = "", asr_model: str = "qwen3-asr-flash", whisper_model: str = "base.en"):
    if kind == "dashscope":
        return DashscopeTranscriber(api_key=api_key, model=asr_model)
    if kind == "whisper":
        return WhisperTranscriber(model_name=whisper_model)
    raise ValueError(f"unknown transcriber: {kind!r}")


def check_status(response: object, code: str) -> None:
    """Raise if a dashscope response carries a non-200 status."""
    if not isinstance(response, dict):
        return
    status = response.get("status_code")
    if status is None or status == 200:
        return
    detail = f"{status} {response.get('code', '')}: {response.get('message', '')}"
    if status == 401:
        raise ServiceError(AUTH_FAILED, detail, retryable=False)
    raise ServiceError(code, detail, retryable=True)


def extract_text(chunk: object) -> str:
    """Pull text from a dashscope response chunk dict."""
    if isinstance(chunk, dict):
        output = chunk.get("output") or {}
        choices = output.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        content = message.get("content") or []
        if isinstance(content, str):
            return content
        if not content:
            return ""
        value = content[0]
        if isinstance(value, dict):
            return str(value.get("text", ""))
    return ""
