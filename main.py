"""Application entrypoint."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from active_app import FrontmostApplicationResolver
from config import FewShotExampleStore, JsonConfigStore
from dispatcher import CommandDispatcher
from errors import ERROR_MESSAGES
from hotkey import GlobalHotkeyAdapter
from interfaces import ConfigStore, HotkeyMonitor
from key_injector import PynputKeyInjector
from language_model import DashscopeChatModel
from listening_controller import ListeningController
from recorder import SoundDeviceRecorder
from transcriber import make_transcriber

log = logging.getLogger("righthand")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="righthand",
        description="Speak commands, have them typed into the frontmost app.",
    )
    parser.add_argument("--config", type=Path, default=None, help="path to config.json")
    parser.add_argument("--dump-wav", type=Path, default=None, metavar="PATH", help="write each utterance to a WAV file")
    parser.add_argument("--timeout", type=float, default=None, help="listening timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


class App:
    def __init__(self, args: argparse.Namespace) -> None:
        self.config_store: ConfigStore = JsonConfigStore(path=args.config)
        api_key = self.config_store.get_api_key()

        self.transcriber = make_transcriber(
            self.config_store.get_transcriber(),
            api_key=api_key,
            asr_model=self.config_store.get_asr_model(),
            whisper_model=self.config_store.get_whisper_model(),
        )
        self.language_model = DashscopeChatModel(api_key=api_key, model=self.config_store.get_llm_model())
        log.info("Using transcriber %s, model %s", self.config_store.get_transcriber(), self.config_store.get_llm_model())
        self.transcriber.ensure_ready()
        self.language_model.ensure_ready()

        examples = FewShotExampleStore(self.config_store.get_programs())
        log.info("Loaded few-shot examples for %d programs", len(examples))
        self.dispatcher = CommandDispatcher(
            transcriber=self.transcriber,
            language_model=self.language_model,
            injector=PynputKeyInjector(),
            examples=examples,
            app_resolver=FrontmostApplicationResolver(),
            dump_wav_path=args.dump_wav,
            on_error=self._on_error,
        )
        self.recorder = SoundDeviceRecorder()
        self.controller = ListeningController(
            capture=self.recorder,
            on_utterance=self.dispatcher.submit,
            listen_timeout_s=args.timeout or self.config_store.get_listen_timeout_s(),
        )
        self.hotkey: HotkeyMonitor = GlobalHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())

    def _on_error(self, code: str, message: str) -> None:
        hint = ERROR_MESSAGES.get(code)
        if hint:
            log.warning("%s %s", code, hint)

    def run(self) -> int:
        self.hotkey.start(on_toggle=self.controller.toggle)
        signal.signal(signal.SIGTERM, lambda *_: self.controller.shutdown())
        try:
            self.controller.run()
        except KeyboardInterrupt:
            self.controller.shutdown()
        finally:
            self.hotkey.stop()
            self.recorder.stop()
        return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)
    try:
        app = App(args)
    except Exception as exc:
        print(f"error initializing app: {exc}", file=sys.stderr)
        return 1
    try:
        return app.run()
    except RuntimeError as exc:
        print(f"error running app: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
