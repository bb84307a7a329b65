"""Speech-engine and timer ports used by the playback synchronizer.

WHY: The synthesizer that actually produces audio is opaque: it accepts
one utterance at a time, supports pause/resume/cancel, and reports back
only start, end and error. The synchronizer must be testable without
real audio, so both the engine and the repeating timer sit behind small
abstract interfaces that tests replace with deterministic fakes.

HOW: SpeechEngine and Scheduler are ABCs. Engine callbacks are delivered
as EngineEvent messages tagged with the generation of the utterance that
produced them, so the receiver can drop events from superseded
utterances. Utterance and Voice are plain dataclasses.

RULES:
- SpeechEngine.speak() is fire-and-forget; results arrive only as events
- Every event carries the generation of the utterance it belongs to
- An engine may deliver events synchronously or later on the event loop
- Scheduler.call_every() returns a handle whose cancel() is idempotent
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Voice:
    """A synthesizer voice as enumerated by the engine.

    Attributes:
        id: Stable identifier used to select the voice.
        name: Human-readable name.
        lang: BCP-47 language tag, e.g. ``"en-US"``.
    """

    id: str
    name: str
    lang: str


@dataclass(frozen=True)
class Utterance:
    """One complete speech request covering the full text to be spoken."""

    text: str
    rate: float
    generation: int
    voice_id: Optional[str] = None


class EngineEventKind(str, enum.Enum):
    STARTED = "started"
    ENDED = "ended"
    ERRORED = "errored"


@dataclass(frozen=True)
class EngineEvent:
    """A start/end/error signal tagged with its utterance generation.

    RULES:
    - reason is only set for ERRORED events
    """

    kind: EngineEventKind
    generation: int
    reason: Optional[str] = None

    @classmethod
    def started(cls, generation: int) -> EngineEvent:
        return cls(EngineEventKind.STARTED, generation)

    @classmethod
    def ended(cls, generation: int) -> EngineEvent:
        return cls(EngineEventKind.ENDED, generation)

    @classmethod
    def errored(cls, generation: int, reason: str) -> EngineEvent:
        return cls(EngineEventKind.ERRORED, generation, reason)


EventListener = Callable[[EngineEvent], None]


class SpeechEngine(ABC):
    """Abstract port for a text-to-speech engine.

    To add a new engine:
    1. Subclass SpeechEngine
    2. Implement speak(), pause(), resume(), cancel() and list_voices()
    3. Deliver STARTED, then exactly one of ENDED or ERRORED, per utterance
    """

    @abstractmethod
    def speak(self, utterance: Utterance, listener: EventListener) -> None:
        """Start speaking ``utterance``; report progress through ``listener``."""

    @abstractmethod
    def pause(self) -> None:
        """Pause the current utterance, if any."""

    @abstractmethod
    def resume(self) -> None:
        """Resume a paused utterance, if any."""

    @abstractmethod
    def cancel(self) -> None:
        """Drop the current utterance. Safe to call when idle."""

    @abstractmethod
    def list_voices(self) -> List[Voice]:
        """Return the voices currently available. The list may change over time."""


class TimerHandle(ABC):
    """Handle to a repeating timer."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the timer. Calling cancel() twice is harmless."""


class Scheduler(ABC):
    """Abstract port for the repeating timer that advances the word index."""

    @abstractmethod
    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle:
        """Invoke ``callback`` every ``interval_s`` seconds until cancelled."""
