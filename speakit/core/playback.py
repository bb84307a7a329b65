"""Playback synchronizer: estimated word position during speech synthesis.

WHY: The synthesizer reports only start, end and error, yet the reader
highlights the word currently being spoken and shows a progress clock.
The synchronizer keeps a locally estimated word index in approximate
lock-step with the engine using the words-per-minute model, and exposes
the transport controls (play, pause, stop, seek, skip, rate, voice).

HOW: A small state machine over PlaybackState. User actions call the
public methods; engine callbacks arrive through handle_event() as
EngineEvent messages tagged with the generation of the utterance that
produced them. A single repeating timer from the injected Scheduler
advances the index while playing. Listeners receive a PlaybackSnapshot
after every change.

RULES:
- current_word_index is always in [0, word_count - 1], or 0 when empty
- estimated_duration is recomputed whenever content or rate changes
- At most one utterance and one advance timer are active at a time
- Every engine cancel bumps the generation; events for any other
  generation are ignored
- The engine's end signal wins: it forces index = word_count - 1
- Seek, rate changes and voice changes stop playback instead of
  resuming mid-utterance; play() then speaks the full text again
- close() cancels the engine and the timer synchronously
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import List, Optional

from speakit.config import BASE_WORDS_PER_MINUTE, DEFAULT_RATE
from speakit.core.document import (
    Document,
    check_rate,
    elapsed_seconds,
    estimated_duration,
    seconds_per_word,
    skip_words,
)
from speakit.speech.base import (
    EngineEvent,
    EngineEventKind,
    Scheduler,
    SpeechEngine,
    TimerHandle,
    Utterance,
    Voice,
)

logger = logging.getLogger(__name__)


class PlaybackState(str, enum.Enum):
    """Valid states of the synchronizer.

    RULES:
    - idle: nothing spoken yet, or stopped
    - loading: utterance issued, waiting for the engine's start signal
    - playing: engine speaking, timer advancing the index
    - paused: engine paused, timer stopped, index preserved
    - ended: engine finished, index on the last word
    - errored: engine reported an error, progress discarded
    """

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERRORED = "errored"


_ACTIVE_STATES = (PlaybackState.LOADING, PlaybackState.PLAYING, PlaybackState.PAUSED)


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Read-only view of the synchronizer handed to listeners."""

    state: PlaybackState
    word_index: int
    word: str
    word_count: int
    elapsed_s: float
    duration_s: float
    rate: float
    voice_id: Optional[str]

    @property
    def progress(self) -> float:
        """Fraction of the document passed, 0.0 to 1.0."""
        if self.word_count <= 1:
            return 1.0 if self.state == PlaybackState.ENDED else 0.0
        return self.word_index / (self.word_count - 1)


PlaybackListener = Callable[[PlaybackSnapshot], None]


def default_voice(voices: List[Voice]) -> Optional[Voice]:
    """Prefer an English voice, otherwise the first one available."""
    for voice in voices:
        if voice.lang.lower().startswith("en"):
            return voice
    return voices[0] if voices else None


class PlaybackSynchronizer:
    """Drives an opaque speech engine and tracks the estimated word index.

    Args:
        engine: The speech engine port.
        scheduler: Source of the repeating index-advance timer.
        base_words_per_minute: Speaking speed assumed at rate 1.0.
        rate: Initial speech rate multiplier (> 0).
    """

    def __init__(
        self,
        engine: SpeechEngine,
        scheduler: Scheduler,
        base_words_per_minute: int = BASE_WORDS_PER_MINUTE,
        rate: float = DEFAULT_RATE,
    ) -> None:
        if base_words_per_minute <= 0:
            raise ValueError("base_words_per_minute must be positive")
        check_rate(rate)
        self._engine = engine
        self._scheduler = scheduler
        self.base_words_per_minute = base_words_per_minute
        self._rate = rate
        self._document = Document.from_text("")
        self._state = PlaybackState.IDLE
        self._index = 0
        self._duration_s = 0.0
        self._generation = 0
        self._timer: Optional[TimerHandle] = None
        self._voices: List[Voice] = []
        self._voice_id: Optional[str] = None
        self._listeners: List[PlaybackListener] = []
        self._last_error: Optional[str] = None
        self._closed = False
        self.refresh_voices()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def document(self) -> Document:
        return self._document

    @property
    def current_word_index(self) -> int:
        return self._index

    @property
    def current_word(self) -> str:
        return self._document.word_at(self._index)

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def estimated_duration(self) -> float:
        return self._duration_s

    @property
    def elapsed_seconds(self) -> float:
        if self._document.is_empty:
            return 0.0
        return elapsed_seconds(self._index, self._rate, self.base_words_per_minute)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def voices(self) -> List[Voice]:
        return list(self._voices)

    @property
    def voice_id(self) -> Optional[str]:
        return self._voice_id

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def timer_active(self) -> bool:
        return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            state=self._state,
            word_index=self._index,
            word=self.current_word,
            word_count=self._document.word_count,
            elapsed_s=self.elapsed_seconds,
            duration_s=self._duration_s,
            rate=self._rate,
            voice_id=self._voice_id,
        )

    def subscribe(self, listener: PlaybackListener) -> Callable[[], None]:
        """Register a change listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Transport controls
    # ------------------------------------------------------------------

    def load(self, content: str, title: str = "") -> Document:
        """Tokenize new content and reset to Idle at the first word."""
        self._ensure_open()
        self._halt()
        self._document = Document.from_text(content, title)
        self._index = 0
        self._last_error = None
        self._recompute_duration()
        self._set_state(PlaybackState.IDLE)
        logger.debug(
            "Loaded %r: %d words, ~%.1fs",
            title, self._document.word_count, self._duration_s,
        )
        self._notify()
        return self._document

    def play(self) -> bool:
        """Resume from Paused, or start a fresh utterance of the full text.

        RULES:
        - Paused: resume the engine and the timer, keep the index
        - Idle/Ended/Errored: cancel any utterance, speak the full text, go Loading
        - Loading/Playing or an empty document: no-op (returns False)
        """
        self._ensure_open()
        if self._state == PlaybackState.PAUSED:
            self._engine.resume()
            self._set_state(PlaybackState.PLAYING)
            self._start_timer()
            self._notify()
            return True
        if self._state in (PlaybackState.LOADING, PlaybackState.PLAYING):
            return False
        if self._document.is_empty:
            return False

        self._stop_timer()
        self._cancel_engine()
        self._last_error = None
        utterance = Utterance(
            text=self._document.content,
            rate=self._rate,
            generation=self._generation,
            voice_id=self._voice_id,
        )
        self._set_state(PlaybackState.LOADING)
        self._notify()
        self._engine.speak(utterance, self.handle_event)
        return True

    def pause(self) -> bool:
        """Pause from Playing; no-op (False) from any other state."""
        self._ensure_open()
        if self._state != PlaybackState.PLAYING:
            return False
        self._engine.pause()
        self._stop_timer()
        self._set_state(PlaybackState.PAUSED)
        self._notify()
        return True

    def stop(self) -> bool:
        """Cancel the utterance and return to Idle at the first word."""
        self._ensure_open()
        if self._state not in _ACTIVE_STATES:
            return False
        self._halt()
        self._index = 0
        self._set_state(PlaybackState.IDLE)
        self._notify()
        return True

    def seek(self, target_index: int) -> int:
        """Move the highlight to a clamped index; stops any playback."""
        self._ensure_open()
        self._index = self._document.clamp(int(target_index))
        if self._state in _ACTIVE_STATES:
            self._halt()
            self._set_state(PlaybackState.IDLE)
        self._notify()
        return self._index

    def skip_forward(self) -> int:
        return self.seek(self._index + self.skip_words)

    def skip_backward(self) -> int:
        return self.seek(self._index - self.skip_words)

    @property
    def skip_words(self) -> int:
        return skip_words(self._rate, self.base_words_per_minute)

    def set_rate(self, new_rate: float) -> None:
        """Change the speech rate; stops playback of an in-flight utterance."""
        self._ensure_open()
        check_rate(new_rate)
        self._rate = float(new_rate)
        self._recompute_duration()
        if self._state in _ACTIVE_STATES:
            self.stop()
        else:
            self._notify()

    def set_voice(self, voice_id: str) -> None:
        """Select a voice by id; stops playback if an utterance is being spoken.

        Raises:
            KeyError: if the engine does not offer ``voice_id``.
        """
        self._ensure_open()
        if voice_id not in {v.id for v in self._voices}:
            raise KeyError("Unknown voice: {}".format(voice_id))
        self._voice_id = voice_id
        if self._state in (PlaybackState.LOADING, PlaybackState.PLAYING):
            self.stop()
        else:
            self._notify()

    def refresh_voices(self) -> List[Voice]:
        """Re-read the engine's voice list, keeping the selection when possible."""
        self._voices = list(self._engine.list_voices())
        if self._voice_id not in {v.id for v in self._voices}:
            fallback = default_voice(self._voices)
            self._voice_id = fallback.id if fallback else None
        return list(self._voices)

    def close(self) -> None:
        """Tear down: cancel the engine and the timer, drop listeners."""
        if self._closed:
            return
        self._stop_timer()
        self._engine.cancel()
        self._generation += 1
        self._closed = True
        self._listeners.clear()
        logger.debug("Playback synchronizer closed")

    def __enter__(self) -> PlaybackSynchronizer:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()

    # ------------------------------------------------------------------
    # Engine events and timer
    # ------------------------------------------------------------------

    def handle_event(self, event: EngineEvent) -> bool:
        """Apply an engine event; returns False when it is ignored.

        RULES:
        - Events after close() or from another generation are ignored
        - STARTED only applies while Loading
        - ENDED and ERRORED only apply while an utterance is active
        """
        if self._closed or event.generation != self._generation:
            logger.debug(
                "Ignoring stale %s event (generation %d, current %d)",
                event.kind.value, event.generation, self._generation,
            )
            return False

        if event.kind == EngineEventKind.STARTED:
            if self._state != PlaybackState.LOADING:
                return False
            self._index = 0
            self._set_state(PlaybackState.PLAYING)
            self._start_timer()
        elif event.kind == EngineEventKind.ENDED:
            if self._state not in _ACTIVE_STATES:
                return False
            self._stop_timer()
            self._index = self._document.last_index
            self._set_state(PlaybackState.ENDED)
        else:
            if self._state not in _ACTIVE_STATES:
                return False
            self._stop_timer()
            self._index = 0
            self._last_error = event.reason or "speech engine error"
            logger.warning("Speech engine error: %s", self._last_error)
            self._set_state(PlaybackState.ERRORED)

        self._notify()
        return True

    def _tick(self) -> None:
        if self._state != PlaybackState.PLAYING:
            self._stop_timer()
            return
        following = self._index + 1
        if following >= self._document.word_count:
            self._stop_timer()
            return
        self._index = following
        self._notify()

    def _start_timer(self) -> None:
        self._stop_timer()
        interval = seconds_per_word(self._rate, self.base_words_per_minute)
        self._timer = self._scheduler.call_every(interval, self._tick)

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # ------------------------------------------------------------------
    # Helpers (private)
    # ------------------------------------------------------------------

    def _cancel_engine(self) -> None:
        """Cancel the engine and invalidate events of the current generation."""
        self._engine.cancel()
        self._generation += 1

    def _halt(self) -> None:
        """Stop the timer and cancel any active utterance."""
        self._stop_timer()
        if self._state in _ACTIVE_STATES:
            self._cancel_engine()

    def _recompute_duration(self) -> None:
        self._duration_s = estimated_duration(
            self._document.word_count, self._rate, self.base_words_per_minute
        )

    def _set_state(self, state: PlaybackState) -> None:
        if state != self._state:
            logger.debug("Playback %s -> %s", self._state.value, state.value)
        self._state = state

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("PlaybackSynchronizer has been closed")

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
