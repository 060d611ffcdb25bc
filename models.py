"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore


class ListeningState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"


class KeySource(str, Enum):
    """Where the pressed key of a combo group came from."""

    EXPLICIT = "explicit"  # `{Command}+t`
    LAST_NAME = "last_name"  # `{Enter}`, `{Command+Tab}`


@dataclass
class AudioBuffer:
    """Float32 mono samples accumulated during one listening cycle."""

    sample_rate: int = 16000
    chunks: list[Any] = field(default_factory=list)

    def append(self, samples: Any) -> None:
        if len(samples):
            self.chunks.append(samples)

    def __len__(self) -> int:
        return sum(len(c) for c in self.chunks)

    @property
    def duration_s(self) -> float:
        return len(self) / float(self.sample_rate)

    def to_array(self) -> Any:
        if np is None:
            raise RuntimeError("numpy is not installed")
        if not self.chunks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate([np.asarray(c, dtype=np.float32).reshape(-1) for c in self.chunks])


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class ComboGroup:
    names: tuple[str, ...]
    key: Optional[str] = None
    separator: str = ""
    span: str = field(default="", compare=False)


Token = Union[Literal, ComboGroup]


@dataclass(frozen=True)
class ComboResolution:
    modifier_names: tuple[str, ...]
    key_name: str
    source: KeySource


@dataclass(frozen=True)
class TypeLiteral:
    text: str


@dataclass(frozen=True)
class PressCombo:
    modifiers: tuple[str, ...]
    key: str


KeyOperation = Union[TypeLiteral, PressCombo]


@dataclass(frozen=True)
class FewShotExample:
    input: str
    output: str


@dataclass
class ProgramExamples:
    program: str
    examples: list[FewShotExample] = field(default_factory=list)


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str
