"""Keystroke injection for typed text and key combos."""

from __future__ import annotations

from typing import Any, Sequence

from errors import DEPENDENCY_MISSING, INJECT_ERROR, ServiceError

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

# Injector key names that differ from pynput's Key attribute names.
_KEY_ALIASES = {
    "command": "cmd",
    "option": "alt",
    "control": "ctrl",
    "return": "enter",
    "escape": "esc",
}


class PynputKeyInjector:
    def __init__(self) -> None:
        self._keyboard: Any = None

    def _controller(self) -> Any:
        if Controller is None or Key is None:
            raise ServiceError(DEPENDENCY_MISSING, "pynput is not installed")
        if self._keyboard is None:
            self._keyboard = Controller()
        return self._keyboard

    def resolve_key(self, name: str) -> Any:
        """Map an injector key name to a pynput key or character."""
        if len(name) == 1:
            return name
        attr = _KEY_ALIASES.get(name.lower(), name.lower())
        key = getattr(Key, attr, None)
        if key is None:
            raise ServiceError(INJECT_ERROR, f"unknown key: {name}")
        return key

    def type_literal(self, text: str) -> None:
        if not text:
            return
        self._controller().type(text)

    def press_combo(self, modifiers: Sequence[str], key: str) -> None:
        keyboard = self._controller()
        held = [self.resolve_key(m) for m in modifiers]
        target = self.resolve_key(key)
        with keyboard.pressed(*held):
            keyboard.press(target)
            keyboard.release(target)
