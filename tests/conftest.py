"""Shared test fixtures and fakes for the speakit test suite.

WHY: The playback synchronizer talks to an opaque speech engine and a
repeating timer. Real audio and wall-clock timers make tests slow and
flaky, so tests drive both by hand: the fake engine only records calls
and emits events when told to, and the manual scheduler fires timer
callbacks on demand.

HOW: FakeSpeechEngine implements the SpeechEngine port and keeps the
listener of the most recent utterance. ManualScheduler implements the
Scheduler port; tick(n) fires every live timer n times.

RULES:
- Fakes never emit events on their own
- fire_* helpers default to the generation of the latest utterance
- A cancelled manual timer never fires again
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

import pytest

from speakit.core.playback import PlaybackSynchronizer
from speakit.speech.base import (
    EngineEvent,
    EventListener,
    Scheduler,
    SpeechEngine,
    TimerHandle,
    Utterance,
    Voice,
)


# ---------------------------------------------------------------------------
# Speech engine fake
# ---------------------------------------------------------------------------

ENGLISH = Voice(id="en-1", name="English One", lang="en-US")
SWEDISH = Voice(id="sv-1", name="Svenska", lang="sv-SE")


class FakeSpeechEngine(SpeechEngine):
    """Records every call; emits events only through fire_* helpers."""

    def __init__(self, voices: Optional[List[Voice]] = None) -> None:
        self.calls: List[str] = []
        self.utterances: List[Utterance] = []
        self.voices = list(voices) if voices is not None else [SWEDISH, ENGLISH]
        self._listener: Optional[EventListener] = None

    @property
    def last_utterance(self) -> Optional[Utterance]:
        return self.utterances[-1] if self.utterances else None

    def speak(self, utterance: Utterance, listener: EventListener) -> None:
        self.calls.append("speak")
        self.utterances.append(utterance)
        self._listener = listener

    def pause(self) -> None:
        self.calls.append("pause")

    def resume(self) -> None:
        self.calls.append("resume")

    def cancel(self) -> None:
        self.calls.append("cancel")

    def list_voices(self) -> List[Voice]:
        return list(self.voices)

    def _emit(self, event: EngineEvent) -> bool:
        assert self._listener is not None, "speak() was never called"
        return self._listener(event)

    def _generation(self, generation: Optional[int]) -> int:
        if generation is not None:
            return generation
        assert self.last_utterance is not None, "speak() was never called"
        return self.last_utterance.generation

    def fire_started(self, generation: Optional[int] = None) -> bool:
        return self._emit(EngineEvent.started(self._generation(generation)))

    def fire_ended(self, generation: Optional[int] = None) -> bool:
        return self._emit(EngineEvent.ended(self._generation(generation)))

    def fire_errored(self, reason: str = "synthesis-failed", generation: Optional[int] = None) -> bool:
        return self._emit(EngineEvent.errored(self._generation(generation), reason))


# ---------------------------------------------------------------------------
# Scheduler fake
# ---------------------------------------------------------------------------


class ManualTimer(TimerHandle):
    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        self.interval_s = interval_s
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Timers fire only when the test calls tick()."""

    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle:
        timer = ManualTimer(interval_s, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def tick(self, times: int = 1) -> None:
        for _ in range(times):
            for timer in self.active:
                if not timer.cancelled:
                    timer.callback()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> FakeSpeechEngine:
    return FakeSpeechEngine()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def player(engine, scheduler):
    """A synchronizer at 150 wpm, rate 1.0, with the fakes wired in."""
    synchronizer = PlaybackSynchronizer(engine, scheduler, base_words_per_minute=150)
    yield synchronizer
    synchronizer.close()


def words(count: int) -> str:
    """Build content of exactly ``count`` distinct words."""
    return " ".join("w{}".format(i) for i in range(count))


def start_playing(player: PlaybackSynchronizer, engine: FakeSpeechEngine, content: str) -> Tuple[int, Utterance]:
    """Load content, play, and deliver the engine's start signal."""
    player.load(content)
    player.play()
    utterance = engine.last_utterance
    engine.fire_started()
    return utterance.generation, utterance
