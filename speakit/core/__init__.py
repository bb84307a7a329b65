"""Core playback model: tokenized documents and the playback synchronizer.

WHY: Word highlighting during speech depends on two pieces that are
independent of any UI or transport: the words-per-minute timing model
and the state machine that keeps an estimated word index in step with
an opaque speech engine.

RULES:
- document.py holds pure functions and the immutable Document
- playback.py holds the only stateful component
"""

from speakit.core.document import Document, estimated_duration, format_clock, skip_words
from speakit.core.playback import PlaybackSnapshot, PlaybackState, PlaybackSynchronizer

__all__ = [
    "Document",
    "PlaybackSnapshot",
    "PlaybackState",
    "PlaybackSynchronizer",
    "estimated_duration",
    "format_clock",
    "skip_words",
]
