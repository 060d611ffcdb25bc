"""Protocol interfaces used by ListeningController and CommandDispatcher."""

from __future__ import annotations

from typing import Any, Callable, Protocol, Sequence

from models import ChatMessage, FewShotExample, ProgramExamples


class AudioCaptureSource(Protocol):
    sample_rate: int

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def pull_chunk(self, duration_s: float) -> Any: ...


class Transcriber(Protocol):
    def transcribe(self, samples: Any, sample_rate: int) -> str: ...


class LanguageModel(Protocol):
    def complete(self, messages: Sequence[ChatMessage]) -> str: ...


class InputInjector(Protocol):
    def type_literal(self, text: str) -> None: ...

    def press_combo(self, modifiers: Sequence[str], key: str) -> None: ...


class ActiveApplicationResolver(Protocol):
    def current_application_name(self) -> str: ...


class ExampleStore(Protocol):
    def examples_for(self, application: str) -> list[FewShotExample]: ...


class HotkeyMonitor(Protocol):
    def start(self, on_toggle: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_llm_model(self) -> str: ...

    def get_transcriber(self) -> str: ...

    def get_asr_model(self) -> str: ...

    def get_whisper_model(self) -> str: ...

    def get_listen_timeout_s(self) -> float: ...

    def get_programs(self) -> list[ProgramExamples]: ...
