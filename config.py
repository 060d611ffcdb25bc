"""Simple JSON-based config store and few-shot example lookup."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Iterable

from models import FewShotExample, ProgramExamples

log = logging.getLogger(__name__)

DEFAULT_CONFIG: dict = {
    "api_key": "",
    "llm_model": "qwen-plus",
    "transcriber": "dashscope",
    "asr_model": "qwen3-asr-flash",
    "whisper_model": "base.en",
    "hotkey": "Key.cmd+Key.ctrl",
    "listen_timeout_s": 30.0,
    "programs": [
        {
            "program": "iTerm2",
            "examples": [
                {"input": "change to my home directory", "output": "cd ~"},
                {"input": "new tab", "output": "{Command}+t"},
                {"input": "Interactively rebase the last 3 commits", "output": "git rebase -i HEAD~3"},
                {"input": "split horizontally", "output": "{Command+Shift}+d"},
            ],
        },
        {
            "program": "Google Chrome",
            "examples": [
                {"input": "Visit CNN.com and a new tab.", "output": "{Command}+t\nhttps://cnn.com{Enter}"},
            ],
        },
    ],
}


def default_config_path() -> Path:
    return Path.home() / ".config" / "righthand" / "config.json"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or default_config_path()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if not self._path.exists():
            log.info("Writing default config to %s", self._path)
            self._write_all(copy.deepcopy(DEFAULT_CONFIG))

    @property
    def path(self) -> Path:
        return self._path

    def get_api_key(self) -> str:
        return str(self._get("api_key"))

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_hotkey(self) -> str:
        return str(self._get("hotkey"))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_llm_model(self) -> str:
        return str(self._get("llm_model"))

    def get_transcriber(self) -> str:
        return str(self._get("transcriber"))

    def get_asr_model(self) -> str:
        return str(self._get("asr_model"))

    def get_whisper_model(self) -> str:
        return str(self._get("whisper_model"))

    def get_listen_timeout_s(self) -> float:
        try:
            return float(self._get("listen_timeout_s"))
        except (TypeError, ValueError):
            return float(DEFAULT_CONFIG["listen_timeout_s"])

    def get_programs(self) -> list[ProgramExamples]:
        programs = []
        for entry in self._get("programs") or []:
            if not isinstance(entry, dict) or "program" not in entry:
                log.warning("Skipping malformed program entry: %r", entry)
                continue
            examples = [
                FewShotExample(input=str(ex.get("input", "")), output=str(ex.get("output", "")))
                for ex in entry.get("examples") or []
                if isinstance(ex, dict)
            ]
            programs.append(ProgramExamples(program=str(entry["program"]), examples=examples))
        return programs

    def _get(self, key: str):  # noqa: ANN202
        data = self._read_all()
        if key in data:
            return data[key]
        return copy.deepcopy(DEFAULT_CONFIG[key])

    def _set(self, key: str, value) -> None:  # noqa: ANN001
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            log.warning("Could not read config %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


class FewShotExampleStore:
    """Read-only examples keyed by exact application name."""

    def __init__(self, programs: Iterable[ProgramExamples]) -> None:
        index: dict[str, list[FewShotExample]] = {}
        for program in programs:
            index.setdefault(program.program, []).extend(program.examples)
        self._index = index

    def examples_for(self, application: str) -> list[FewShotExample]:
        return list(self._index.get(application, []))

    def __len__(self) -> int:
        return len(self._index)
