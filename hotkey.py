"""Global chord hotkey adapter based on pynput.

The hotkey is written as ``+``-joined pynput key names, e.g.
``Key.cmd+Key.ctrl``.  The last key is the trigger: releasing it while every
other key of the chord is still held fires one toggle.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore


def parse_chord(hotkey: str) -> tuple[frozenset[str], str]:
    names = [part.strip() for part in hotkey.split("+") if part.strip()]
    if not names:
        raise ValueError(f"empty hotkey: {hotkey!r}")
    return frozenset(names[:-1]), names[-1]


class GlobalHotkeyAdapter:
    def __init__(self, hotkey_name: str = "Key.cmd+Key.ctrl") -> None:
        self._held_required, self._trigger = parse_chord(hotkey_name)
        self._listener: Optional[object] = None
        self._down: set[str] = set()
        self._lock = threading.Lock()
        self._on_toggle: Optional[Callable[[], None]] = None

    def start(self, on_toggle: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_toggle = on_toggle
        self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        self._listener.start()

    def _on_press(self, key: object) -> None:
        with self._lock:
            self._down.add(str(key))

    def _on_release(self, key: object) -> None:
        name = str(key)
        with self._lock:
            fire = name == self._trigger and self._held_required <= self._down
            self._down.discard(name)
        if fire and self._on_toggle is not None:
            self._on_toggle()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
