"""Directive markup parsing and key event synthesis.

A directive is one line of text returned by the language model, for example
``{Command}+t`` or ``cd ~``.  Bracketed groups name modifier keys and are
turned into key combos; everything else is typed literally:

    {Command+Shift}+d     press d with Command and Shift held
    {Enter}               press the Enter key
    {Command+Tab}         press Tab with Command held

A combo group may be followed by one space, semicolon or newline.  That
separator is consumed and never typed.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Iterable, Iterator, Sequence

from interfaces import InputInjector
from models import (
    ComboGroup,
    ComboResolution,
    KeyOperation,
    KeySource,
    Literal,
    PressCombo,
    Token,
    TypeLiteral,
)

log = logging.getLogger(__name__)

# Directive names mapped to the key names the injector understands.
# Tab and Enter are keys, not modifiers, but may appear inside braces.
MODIFIER_KEYS = {
    "Command": "command",
    "Shift": "shift",
    "Option": "alt",
    "Control": "ctrl",
    "Tab": "tab",
    "Enter": "enter",
}

# Multi-character key names the injector can press.  Single characters are
# always accepted.
NAMED_KEYS = frozenset(
    {
        "command", "shift", "alt", "ctrl", "tab", "enter", "return", "esc", "escape",
        "space", "backspace", "delete", "up", "down", "left", "right",
        "home", "end", "page_up", "page_down", "caps_lock",
    }
    | {f"f{n}" for n in range(1, 13)}
)

# Pressed after every combo so a held Shift never leaks into literal typing.
SHIFT_RELEASE = PressCombo(modifiers=(), key="shift")

COMBO_DELAY_S = 0.1

_COMBO_PATTERN = re.compile(
    r"\{(?P<names>(?:[^}]+\+)*[^}]+)\}"
    r"(?:\+(?P<key>[A-Za-z0-9]+))?"
    r"(?P<sep>[ ;\n])?"
)


class DirectiveLexer:
    """Iterable over the tokens of a directive.

    Tokens are produced lazily and cover the whole input in order.  Each
    call to ``iter()`` starts a fresh scan.
    """

    def __init__(self, text: str) -> None:
        self.text = text

    def __iter__(self) -> Iterator[Token]:
        text = self.text
        last = 0
        for match in _COMBO_PATTERN.finditer(text):
            if match.start() > last:
                yield Literal(text[last : match.start()])
            separator = match.group("sep") or ""
            yield ComboGroup(
                names=tuple(name.strip() for name in match.group("names").split("+")),
                key=match.group("key"),
                separator=separator,
                span=text[match.start() : match.end() - len(separator)],
            )
            last = match.end()
        if last < len(text):
            yield Literal(text[last:])


def tokenize(text: str) -> Iterator[Token]:
    return iter(DirectiveLexer(text))


def resolve_combo(group: ComboGroup) -> ComboResolution:
    """Decide which name of a combo group is the key to press.

    With an explicit ``+key`` suffix every bracketed name is a modifier.
    Otherwise the last bracketed name is the key: a known name maps through
    MODIFIER_KEYS (``{Enter}`` presses ``enter``), anything else is pressed
    as its lower-cased self.
    """
    names = tuple(name for name in group.names if name)
    if group.key:
        return ComboResolution(modifier_names=names, key_name=group.key, source=KeySource.EXPLICIT)
    if not names:
        return ComboResolution(modifier_names=(), key_name="", source=KeySource.LAST_NAME)
    last = names[-1]
    key_name = MODIFIER_KEYS.get(last, last.lower())
    return ComboResolution(modifier_names=names[:-1], key_name=key_name, source=KeySource.LAST_NAME)


def synthesize(tokens: Iterable[Token]) -> list[KeyOperation]:
    ops: list[KeyOperation] = []
    for token in tokens:
        if isinstance(token, Literal):
            if token.text:
                ops.append(TypeLiteral(token.text))
            continue

        resolution = resolve_combo(token)
        if not resolution.key_name:
            log.warning("Combo group %r has no key, skipping", token.span)
            continue
        key = resolution.key_name if len(resolution.key_name) == 1 else resolution.key_name.lower()
        if len(key) > 1 and key not in NAMED_KEYS:
            log.warning("Unknown key %r in %r, skipping", resolution.key_name, token.span)
            continue
        modifiers = []
        for name in resolution.modifier_names:
            modifier = MODIFIER_KEYS.get(name)
            if modifier is None:
                log.warning("Unknown modifier: %s", name)
                continue
            modifiers.append(modifier)
        ops.append(PressCombo(modifiers=tuple(modifiers), key=key))
        ops.append(SHIFT_RELEASE)
    return ops


def parse_directive(text: str) -> list[KeyOperation]:
    return synthesize(DirectiveLexer(text))


def execute_operations(
    ops: Sequence[KeyOperation],
    injector: InputInjector,
    combo_delay_s: float = COMBO_DELAY_S,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Replay operations in order; sleep briefly after each combo."""
    for op in ops:
        if isinstance(op, TypeLiteral):
            log.info("Typing text: %r", op.text)
            injector.type_literal(op.text)
            continue
        log.debug("Pressing %s with modifiers %s", op.key, list(op.modifiers))
        injector.press_combo(op.modifiers, op.key)
        if op == SHIFT_RELEASE:
            sleep(combo_delay_s)
