from __future__ import annotations

import time

from listening_controller import ListeningController
from models import AudioBuffer, ListeningState


class FakeCapture:
    sample_rate = 16000

    def __init__(self, chunks=None, fail_start: bool = False, fail_stop: bool = False, pull_delay_s: float = 0.0) -> None:  # noqa: ANN001
        self.chunks = list(chunks or [])
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.pull_delay_s = pull_delay_s
        self.started = 0
        self.stopped = 0
        self.pulls = 0

    def start(self) -> None:
        self.started += 1
        if self.fail_start:
            raise RuntimeError("no microphone")

    def stop(self) -> None:
        self.stopped += 1
        if self.fail_stop:
            raise RuntimeError("device vanished")

    def pull_chunk(self, duration_s: float):  # noqa: ANN201
        self.pulls += 1
        if self.pull_delay_s:
            time.sleep(self.pull_delay_s)
        item = self.chunks.pop(0) if self.chunks else [0.0, 0.0]
        if isinstance(item, Exception):
            raise item
        return item


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _make(capture: FakeCapture, **kwargs):  # noqa: ANN003, ANN202
    utterances: list[AudioBuffer] = []
    clock = FakeClock()
    controller = ListeningController(
        capture=capture,
        on_utterance=utterances.append,
        clock=clock,
        **kwargs,
    )
    return controller, utterances, clock


def _wait_until(predicate, timeout: float = 2.0) -> bool:  # noqa: ANN001
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_toggle_starts_listening_with_empty_buffer() -> None:
    capture = FakeCapture()
    controller, _, _ = _make(capture)

    controller.toggle()
    controller.poll(block=False)

    assert controller.state == ListeningState.LISTENING
    assert capture.started == 1
    assert len(controller.buffer) == 0


def test_full_cycle_hands_off_buffer() -> None:
    capture = FakeCapture(chunks=[[0.1, 0.2], [0.3]])
    controller, utterances, _ = _make(capture)

    controller.toggle()
    controller.poll(block=False)
    controller.poll(block=False)
    controller.poll(block=False)
    controller.toggle()
    controller.poll(block=False)

    assert controller.state == ListeningState.IDLE
    assert capture.stopped == 1
    assert len(utterances) == 1
    assert len(utterances[0]) == 3
    assert utterances[0].chunks == [[0.1, 0.2], [0.3]]
    assert len(controller.buffer) == 0


def test_idle_never_pulls_audio() -> None:
    capture = FakeCapture()
    controller, utterances, _ = _make(capture)

    for _ in range(5):
        controller.poll(block=False)

    assert capture.pulls == 0
    assert len(controller.buffer) == 0
    assert utterances == []


def test_handed_off_buffer_is_not_touched_by_next_cycle() -> None:
    capture = FakeCapture(chunks=[[0.5], [0.6, 0.7]])
    controller, utterances, _ = _make(capture)

    controller.toggle()
    controller.poll(block=False)
    controller.poll(block=False)
    controller.toggle()
    controller.poll(block=False)

    controller.toggle()
    controller.poll(block=False)
    assert len(controller.buffer) == 0
    controller.poll(block=False)

    assert len(controller.buffer) == 2
    assert utterances[0].chunks == [[0.5]]
    assert controller.buffer is not utterances[0]


def test_timeout_forces_single_stop() -> None:
    capture = FakeCapture()
    controller, utterances, clock = _make(capture, listen_timeout_s=30.0)

    controller.toggle()
    controller.poll(block=False)
    clock.now += 29.0
    controller.poll(block=False)
    assert controller.state == ListeningState.LISTENING

    clock.now += 1.0
    controller.poll(block=False)
    assert controller.state == ListeningState.IDLE
    assert capture.stopped == 1

    clock.now += 100.0
    controller.poll(block=False)
    controller.poll(block=False)
    assert len(utterances) == 1
    assert controller.state == ListeningState.IDLE


def test_toggle_off_disarms_timer() -> None:
    capture = FakeCapture()
    controller, utterances, clock = _make(capture, listen_timeout_s=5.0)

    controller.toggle()
    controller.poll(block=False)
    controller.toggle()
    controller.poll(block=False)

    clock.now += 10.0
    controller.poll(block=False)
    assert len(utterances) == 1
    assert controller.state == ListeningState.IDLE


def test_capture_error_skips_tick() -> None:
    capture = FakeCapture(chunks=[[0.1, 0.2], RuntimeError("overflow"), [0.3]])
    controller, _, _ = _make(capture, chunk_duration_s=0.01)

    controller.toggle()
    controller.poll(block=False)
    for _ in range(3):
        controller.poll(block=False)

    assert controller.state == ListeningState.LISTENING
    assert len(controller.buffer) == 3


def test_failing_capture_waits_out_each_tick() -> None:
    capture = FakeCapture(chunks=[RuntimeError("device unavailable")] * 1000)
    controller = ListeningController(
        capture=capture,
        on_utterance=lambda b: None,
        chunk_duration_s=0.1,
    )
    controller.toggle()
    controller.poll(block=False)

    deadline = time.time() + 0.5
    while time.time() < deadline:
        controller.poll(block=False)

    assert controller.state == ListeningState.LISTENING
    assert capture.pulls <= 7


def test_start_and_stop_failures_do_not_block_transitions() -> None:
    capture = FakeCapture(fail_start=True, fail_stop=True)
    controller, utterances, _ = _make(capture)

    controller.toggle()
    controller.poll(block=False)
    assert controller.state == ListeningState.LISTENING

    controller.toggle()
    controller.poll(block=False)
    assert controller.state == ListeningState.IDLE
    assert len(utterances) == 1


def test_only_one_toggle_is_pending() -> None:
    capture = FakeCapture()
    controller, _, _ = _make(capture)

    controller.toggle()
    controller.toggle()
    controller.toggle()
    controller.poll(block=False)
    controller.poll(block=False)

    assert controller.state == ListeningState.LISTENING
    assert capture.pulls == 1


def test_utterance_handler_failure_keeps_controller_usable() -> None:
    capture = FakeCapture()

    def boom(buffer: AudioBuffer) -> None:
        raise RuntimeError("dispatcher exploded")

    controller = ListeningController(capture=capture, on_utterance=boom, clock=FakeClock())
    controller.toggle()
    controller.poll(block=False)
    controller.toggle()
    controller.poll(block=False)
    assert controller.state == ListeningState.IDLE

    controller.toggle()
    controller.poll(block=False)
    assert controller.state == ListeningState.LISTENING


def test_state_change_callback_sees_both_transitions() -> None:
    transitions: list[tuple[ListeningState, ListeningState]] = []
    controller = ListeningController(
        capture=FakeCapture(),
        on_utterance=lambda b: None,
        clock=FakeClock(),
        on_state_change=lambda f, t: transitions.append((f, t)),
    )

    controller.toggle()
    controller.poll(block=False)
    controller.toggle()
    controller.poll(block=False)

    assert transitions == [
        (ListeningState.IDLE, ListeningState.LISTENING),
        (ListeningState.LISTENING, ListeningState.IDLE),
    ]


def test_threaded_loop_runs_a_cycle() -> None:
    capture = FakeCapture(pull_delay_s=0.01)
    utterances: list[AudioBuffer] = []
    controller = ListeningController(
        capture=capture,
        on_utterance=utterances.append,
        idle_poll_s=0.01,
    )
    controller.start()
    try:
        controller.toggle()
        assert _wait_until(lambda: controller.state == ListeningState.LISTENING)
        assert _wait_until(lambda: capture.pulls >= 2)
        controller.toggle()
        assert _wait_until(lambda: len(utterances) == 1)
    finally:
        controller.shutdown()
        controller.join(timeout=2.0)

    assert controller.state == ListeningState.IDLE
    assert len(utterances[0]) >= 4


def test_shutdown_while_listening_stops_capture_without_dispatch() -> None:
    capture = FakeCapture(pull_delay_s=0.01)
    utterances: list[AudioBuffer] = []
    controller = ListeningController(capture=capture, on_utterance=utterances.append, idle_poll_s=0.01)
    controller.start()

    controller.toggle()
    assert _wait_until(lambda: controller.state == ListeningState.LISTENING)
    controller.shutdown()
    controller.join(timeout=2.0)

    assert capture.stopped == 1
    assert utterances == []
    assert controller.state == ListeningState.IDLE
