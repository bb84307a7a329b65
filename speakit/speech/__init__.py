"""Speech-engine port and its asyncio implementations.

WHY: The playback synchronizer must not depend on any particular
synthesizer. This package defines the engine and timer interfaces and
ships the implementations used by the command-line read-along preview.

RULES:
- The synchronizer only talks to SpeechEngine and Scheduler
- Engine events are tagged with an utterance generation
"""

from speakit.speech.base import (
    EngineEvent,
    EngineEventKind,
    Scheduler,
    SpeechEngine,
    TimerHandle,
    Utterance,
    Voice,
)
from speakit.speech.paced import PacedSpeechEngine
from speakit.speech.scheduler import AsyncioScheduler

__all__ = [
    "AsyncioScheduler",
    "EngineEvent",
    "EngineEventKind",
    "PacedSpeechEngine",
    "Scheduler",
    "SpeechEngine",
    "TimerHandle",
    "Utterance",
    "Voice",
]
