"""Frontmost application lookup via System Events."""

from __future__ import annotations

import logging
import subprocess

log = logging.getLogger(__name__)

_FRONTMOST_SCRIPT = (
    'tell application "System Events" to get name of first application process whose frontmost is true'
)


class FrontmostApplicationResolver:
    def __init__(self, timeout_s: float = 2.0) -> None:
        self._timeout_s = timeout_s

    def current_application_name(self) -> str:
        try:
            out = subprocess.check_output(
                ["osascript", "-e", _FRONTMOST_SCRIPT],
                text=True,
                timeout=self._timeout_s,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            log.warning("Could not query frontmost application: %s", exc)
            return ""
        name = out.strip()
        log.info("Active app: %s", name)
        return name
