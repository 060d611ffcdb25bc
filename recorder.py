"""Microphone capture source."""

from __future__ import annotations

import threading
import time
from queue import Empty, Full, Queue
from typing import Any

from errors import CAPTURE_ERROR, DEPENDENCY_MISSING, ServiceError

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore


class SoundDeviceRecorder:
    """Float32 mono input stream whose blocks are pulled in fixed windows."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        block_ms: int = 100,
        queue_maxsize: int = 600,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_ms = block_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_blocks = 0
        self._blocks: Queue[Any] = Queue(maxsize=queue_maxsize)

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None or np is None:
                raise ServiceError(DEPENDENCY_MISSING, "sounddevice is not installed")
            self._blocks = Queue(maxsize=self._blocks.maxsize)
            blocksize = int(self.sample_rate * (self.block_ms / 1000.0))
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                blocksize=blocksize,
                callback=self._on_audio,
            )
            self._stream.start()
            self._running = True

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None

    def pull_chunk(self, duration_s: float) -> Any:
        """Collect roughly ``duration_s`` of audio captured since the last pull.

        Blocks until that much audio arrived or the window elapsed.
        """
        if not self._running:
            raise ServiceError(CAPTURE_ERROR, "capture is not running")
        wanted = int(self.sample_rate * duration_s)
        deadline = time.monotonic() + duration_s
        blocks = []
        collected = 0
        while collected < wanted:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                block = self._blocks.get(timeout=remaining)
            except Empty:
                break
            blocks.append(block)
            collected += len(block)
        if not blocks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(blocks)

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or np is None:
            return
        samples = np.asarray(indata, dtype=np.float32)
        if samples.ndim > 1:
            samples = samples.mean(axis=1)
        try:
            self._blocks.put_nowait(samples.astype(np.float32).copy())
        except Full:
            self.dropped_blocks += 1
