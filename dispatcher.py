"""Turns one completed listening cycle into keystrokes."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from directive import execute_operations, parse_directive
from errors import INJECT_ERROR, LLM_ERROR, TRANSCRIBE_ERROR, ServiceError, classify_exception
from interfaces import (
    ActiveApplicationResolver,
    ExampleStore,
    InputInjector,
    LanguageModel,
    Transcriber,
)
from models import AudioBuffer, ChatMessage
from transcriber import write_wav

log = logging.getLogger(__name__)

ErrorCallback = Callable[[str, str], None]

SYSTEM_PROMPT = """You are an AI assistant that interprets transcribed voice input
and translates it into commands or text inputs for various applications.

Your current active program is {application}. Adjust your interpretation based on this context.

When interpreting commands, indicate modifier keys such as Command, Option, Shift,
or Control using curly braces. For instance, use '{{Command}}+t' for opening a new tab.

When outputting a command with a modifier key, use Shift as a modifier instead of including an uppercase character.

Your output will be used as keyboard input for the active application.
Return the input exactly as provided if you aren't confident in your answer."""


class CommandDispatcher:
    def __init__(
        self,
        transcriber: Transcriber,
        language_model: LanguageModel,
        injector: InputInjector,
        examples: ExampleStore,
        app_resolver: ActiveApplicationResolver,
        dump_wav_path: Optional[Path] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._transcriber = transcriber
        self._language_model = language_model
        self._injector = injector
        self._examples = examples
        self._app_resolver = app_resolver
        self._dump_wav_path = dump_wav_path
        self._on_error = on_error

    def submit(self, buffer: AudioBuffer) -> threading.Thread:
        """Run a dispatch in the background; the caller gives up ``buffer``."""
        thread = threading.Thread(target=self._run, args=(buffer,), name="dispatch", daemon=True)
        thread.start()
        return thread

    def _run(self, buffer: AudioBuffer) -> None:
        try:
            application = self._app_resolver.current_application_name()
        except Exception as exc:
            log.warning("Could not resolve active application: %s", exc)
            application = ""
        self.dispatch(buffer, application)

    def build_messages(self, application: str, text: str) -> list[ChatMessage]:
        messages = [ChatMessage("system", SYSTEM_PROMPT.format(application=application))]
        examples = self._examples.examples_for(application)
        for example in examples:
            messages.append(ChatMessage("user", example.input))
            messages.append(ChatMessage("assistant", example.output))
        log.info("Using %d few-shot examples for %r", len(examples), application)
        messages.append(ChatMessage("user", text))
        return messages

    def dispatch(self, buffer: AudioBuffer, application: str) -> bool:
        """Transcribe, interpret and type one utterance.

        Returns True when keystrokes were sent.  Every failure is logged and
        reported through ``on_error``; none of them propagate.
        """
        if self._dump_wav_path is not None:
            try:
                write_wav(self._dump_wav_path, buffer.to_array(), buffer.sample_rate)
            except Exception as exc:
                log.warning("Could not write %s: %s", self._dump_wav_path, exc)

        started = time.monotonic()
        try:
            text = self._transcriber.transcribe(buffer.to_array(), buffer.sample_rate).strip()
        except Exception as exc:
            self._fail(classify_exception(exc, TRANSCRIBE_ERROR), "transcribing")
            return False
        log.info("Transcribed %r in %.2fs", text, time.monotonic() - started)
        if not text:
            return False

        messages = self.build_messages(application, text)
        try:
            directive = self._language_model.complete(messages)
        except Exception as exc:
            self._fail(classify_exception(exc, LLM_ERROR), "calling language model")
            return False
        log.info("Response: %r", directive)

        ops = parse_directive(directive)
        try:
            execute_operations(ops, self._injector)
        except Exception as exc:
            self._fail(classify_exception(exc, INJECT_ERROR), "sending keystrokes")
            return False
        return True

    def _fail(self, error: ServiceError, action: str) -> None:
        if error.retryable:
            log.error("Error %s: %s (may succeed on the next utterance)", action, error)
        else:
            log.error("Error %s: %s", action, error)
        if self._on_error:
            self._on_error(error.code, error.message)
