"""Silent, paced speech engine for terminal read-along previews.

WHY: The CLI has no browser synthesizer to drive, but the read-along
preview still needs an engine that behaves like one: it starts
asynchronously, takes a realistic amount of time, can be paused and
resumed, and reports "interrupted" for cancelled utterances just as
browser engines do. Its true speaking speed is configurable, which makes
the drift between the estimated word index and the end signal visible.

HOW: speak() schedules STARTED on the next loop iteration and ENDED
after word_count / (wpm * rate) minutes. pause() records the remaining
time and cancels the pending end; resume() re-arms it. cancel() drops
the utterance and reports ERRORED("interrupted") for its generation.

RULES:
- Only one utterance is active at a time; speak() cancels the previous one
- Events are always delivered via the event loop, never synchronously
- The interrupted event of a cancelled utterance carries its old generation
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from speakit.config import BASE_WORDS_PER_MINUTE
from speakit.core.document import tokenize
from speakit.speech.base import EngineEvent, EventListener, SpeechEngine, Utterance, Voice

logger = logging.getLogger(__name__)

DEFAULT_VOICES = [
    Voice(id="paced-en", name="Paced (English)", lang="en-US"),
    Voice(id="paced-sv", name="Paced (Swedish)", lang="sv-SE"),
]


class PacedSpeechEngine(SpeechEngine):
    """Engine that "speaks" silently for a computed duration.

    Args:
        words_per_minute: True speaking speed at rate 1.0.
        voices: Voices to advertise. Defaults to DEFAULT_VOICES.
        loop: Event loop to schedule on. Defaults to the running loop.
    """

    def __init__(
        self,
        words_per_minute: float = BASE_WORDS_PER_MINUTE,
        voices: Optional[List[Voice]] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if words_per_minute <= 0:
            raise ValueError("words_per_minute must be positive")
        self.words_per_minute = words_per_minute
        self._voices = list(voices if voices is not None else DEFAULT_VOICES)
        self._loop = loop
        self._utterance: Optional[Utterance] = None
        self._listener: Optional[EventListener] = None
        self._end_handle: Optional[asyncio.Handle] = None
        self._remaining_s = 0.0
        self._segment_started_at = 0.0
        self._paused = False

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def duration_for(self, utterance: Utterance) -> float:
        words = len(tokenize(utterance.text))
        return words / (self.words_per_minute * utterance.rate) * 60.0

    @property
    def speaking(self) -> bool:
        return self._utterance is not None and not self._paused

    @property
    def paused(self) -> bool:
        return self._utterance is not None and self._paused

    def speak(self, utterance: Utterance, listener: EventListener) -> None:
        self.cancel()
        loop = self._get_loop()
        self._utterance = utterance
        self._listener = listener
        self._paused = False
        self._remaining_s = self.duration_for(utterance)
        self._segment_started_at = loop.time()
        loop.call_soon(listener, EngineEvent.started(utterance.generation))
        self._end_handle = loop.call_later(self._remaining_s, self._finish)
        logger.debug(
            "Speaking generation %d (%.1fs)", utterance.generation, self._remaining_s
        )

    def _finish(self) -> None:
        utterance, listener = self._utterance, self._listener
        self._clear()
        if utterance is not None and listener is not None:
            listener(EngineEvent.ended(utterance.generation))

    def pause(self) -> None:
        if self._utterance is None or self._paused:
            return
        loop = self._get_loop()
        elapsed = loop.time() - self._segment_started_at
        self._remaining_s = max(self._remaining_s - elapsed, 0.0)
        if self._end_handle is not None:
            self._end_handle.cancel()
            self._end_handle = None
        self._paused = True

    def resume(self) -> None:
        if self._utterance is None or not self._paused:
            return
        loop = self._get_loop()
        self._paused = False
        self._segment_started_at = loop.time()
        self._end_handle = loop.call_later(self._remaining_s, self._finish)

    def cancel(self) -> None:
        utterance, listener = self._utterance, self._listener
        if utterance is None:
            return
        self._clear()
        if listener is not None:
            self._get_loop().call_soon(
                listener, EngineEvent.errored(utterance.generation, "interrupted")
            )

    def _clear(self) -> None:
        if self._end_handle is not None:
            self._end_handle.cancel()
            self._end_handle = None
        self._utterance = None
        self._listener = None
        self._paused = False
        self._remaining_s = 0.0

    def list_voices(self) -> List[Voice]:
        return list(self._voices)
