"""Tokenized document and the words-per-minute timing model.

WHY: Speech engines expose no sub-utterance position, so every playback
position, duration, and skip distance is derived from a fixed
words-per-minute model applied to a whitespace-tokenized word list. The
model lives here, separate from the synchronizer's state machine, so the
HTTP layer and the CLI can quote the same estimates.

HOW: Document is a frozen dataclass built by Document.from_text(). The
timing helpers are plain functions of (word count, base wpm, rate).

RULES:
- Words are whitespace-split tokens with empties discarded
- A Document is immutable; new content means a new Document
- estimated_duration = word_count / (base_wpm * rate) * 60
- rate must be finite and > 0 for every timing helper (ValueError otherwise)
- skip_words = floor(base_wpm * rate / 6) (about ten seconds of words)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

from speakit.config import BASE_WORDS_PER_MINUTE, SKIP_SECONDS


def tokenize(text: str) -> Tuple[str, ...]:
    """Split text on whitespace, discarding empty tokens."""
    return tuple(text.split())


@dataclass(frozen=True)
class Document:
    """An ordered, immutable sequence of word tokens with a title.

    RULES:
    - content keeps the original text (it is what the engine speaks)
    - words is derived from content and never edited in place
    """

    title: str
    content: str
    words: Tuple[str, ...]

    @classmethod
    def from_text(cls, content: str, title: str = "") -> Document:
        return cls(title=title, content=content, words=tokenize(content))

    @property
    def word_count(self) -> int:
        return len(self.words)

    @property
    def is_empty(self) -> bool:
        return not self.words

    @property
    def last_index(self) -> int:
        """Highest valid word index (0 for an empty document)."""
        return max(self.word_count - 1, 0)

    def clamp(self, index: int) -> int:
        """Clamp an index into [0, last_index]."""
        return min(max(index, 0), self.last_index)

    def word_at(self, index: int) -> str:
        if self.is_empty:
            return ""
        return self.words[self.clamp(index)]


def check_rate(rate: float) -> None:
    """Raise ValueError unless rate is a finite number above 0."""
    if not (rate > 0 and math.isfinite(rate)):
        raise ValueError("Rate must be a finite number greater than 0, got {}".format(rate))


def words_per_second(rate: float, base_wpm: int = BASE_WORDS_PER_MINUTE) -> float:
    check_rate(rate)
    return base_wpm * rate / 60.0


def seconds_per_word(rate: float, base_wpm: int = BASE_WORDS_PER_MINUTE) -> float:
    """Interval of the index-advance timer, in seconds."""
    return 1.0 / words_per_second(rate, base_wpm)


def estimated_duration(word_count: int, rate: float, base_wpm: int = BASE_WORDS_PER_MINUTE) -> float:
    """Estimated speaking time for word_count words at the given rate."""
    check_rate(rate)
    return word_count / (base_wpm * rate) * 60.0


def elapsed_seconds(word_index: int, rate: float, base_wpm: int = BASE_WORDS_PER_MINUTE) -> float:
    """Restate a word index as a playback clock value."""
    return word_index / words_per_second(rate, base_wpm)


def skip_words(rate: float, base_wpm: int = BASE_WORDS_PER_MINUTE) -> int:
    """Number of words covered by one skip forward/backward."""
    check_rate(rate)
    return int(math.floor(base_wpm * rate / (60 / SKIP_SECONDS)))


def format_clock(seconds: float) -> str:
    """Render seconds as m:ss for the time display."""
    total = max(int(seconds), 0)
    return "{}:{:02d}".format(total // 60, total % 60)
