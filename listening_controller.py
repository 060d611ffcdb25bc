"""State-machine based listening orchestration.

A single loop owns the state and the audio buffer.  Each iteration handles
exactly one event source, in priority order: a pending toggle, the
inactivity deadline, then (while listening) one capture tick.  Toggles are
delivered from other threads through a one-slot queue, so at most one
toggle is ever pending.
"""

from __future__ import annotations

import logging
import threading
import time
from queue import Empty, Full, Queue
from typing import Callable, Optional

from interfaces import AudioCaptureSource
from models import AudioBuffer, ListeningState

log = logging.getLogger(__name__)

StateCallback = Callable[[ListeningState, ListeningState], None]
UtteranceCallback = Callable[[AudioBuffer], None]

DEFAULT_LISTEN_TIMEOUT_S = 30.0


class ListeningController:
    def __init__(
        self,
        capture: AudioCaptureSource,
        on_utterance: UtteranceCallback,
        listen_timeout_s: float = DEFAULT_LISTEN_TIMEOUT_S,
        chunk_duration_s: float = 1.0,
        idle_poll_s: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._capture = capture
        self._on_utterance = on_utterance
        self._listen_timeout_s = listen_timeout_s
        self._chunk_duration_s = chunk_duration_s
        self._idle_poll_s = idle_poll_s
        self._clock = clock
        self._on_state_change = on_state_change

        self._toggles: Queue[None] = Queue(maxsize=1)
        self._shutdown = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._state = ListeningState.IDLE
        self._buffer = self._new_buffer()
        self._deadline: Optional[float] = None

    @property
    def state(self) -> ListeningState:
        return self._state

    @property
    def buffer(self) -> AudioBuffer:
        return self._buffer

    # ------------------------------------------------------------------
    # Signals (safe to call from any thread)
    # ------------------------------------------------------------------

    def toggle(self) -> None:
        try:
            self._toggles.put_nowait(None)
        except Full:
            log.debug("Toggle already pending, ignoring")

    def shutdown(self) -> None:
        self._shutdown.set()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._shutdown.clear()
        self._thread = threading.Thread(target=self.run, name="listening-loop", daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def run(self) -> None:
        log.info("Ready")
        while not self._shutdown.is_set():
            self.poll()
        if self._state == ListeningState.LISTENING:
            self._deadline = None
            self._safe_stop_capture()
            self._buffer = self._new_buffer()
            self._transition(ListeningState.IDLE)
        log.info("Done")

    def poll(self, block: bool = True) -> None:
        """Run one loop iteration.

        While idle with ``block`` set this waits up to ``idle_poll_s`` for a
        toggle.  While listening it never waits on the toggle queue; the
        capture tick is what paces the loop.
        """
        if self._next_toggle(block):
            if self._state == ListeningState.IDLE:
                self._start_listening()
            else:
                self._stop_listening()
            return

        if self._state != ListeningState.LISTENING:
            return

        if self._deadline is not None and self._clock() >= self._deadline:
            log.info("No toggle for %.0fs, stopping", self._listen_timeout_s)
            self._stop_listening()
            return

        self._tick()

    def _next_toggle(self, block: bool) -> bool:
        try:
            if block and self._state == ListeningState.IDLE:
                self._toggles.get(timeout=self._idle_poll_s)
            else:
                self._toggles.get_nowait()
        except Empty:
            return False
        return True

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _start_listening(self) -> None:
        self._buffer = self._new_buffer()
        try:
            self._capture.start()
        except Exception as exc:
            log.error("Error starting capture: %s", exc)
        self._deadline = self._clock() + self._listen_timeout_s
        self._transition(ListeningState.LISTENING)

    def _stop_listening(self) -> None:
        self._deadline = None
        self._safe_stop_capture()
        buffer, self._buffer = self._buffer, self._new_buffer()
        self._transition(ListeningState.IDLE)
        log.info("Captured %.1fs of audio", buffer.duration_s)
        try:
            self._on_utterance(buffer)
        except Exception:
            log.exception("Utterance handler failed")

    def _tick(self) -> None:
        try:
            samples = self._capture.pull_chunk(self._chunk_duration_s)
        except Exception as exc:
            log.warning("Error collecting audio data: %s", exc)
            self._shutdown.wait(self._chunk_duration_s)
            return
        self._buffer.append(samples)

    def _safe_stop_capture(self) -> None:
        try:
            self._capture.stop()
        except Exception as exc:
            log.error("Error stopping capture: %s", exc)

    def _new_buffer(self) -> AudioBuffer:
        return AudioBuffer(sample_rate=getattr(self._capture, "sample_rate", 16000))

    def _transition(self, to_state: ListeningState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        log.info("%s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
