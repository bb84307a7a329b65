"""Tests for the asyncio scheduler and the paced speech engine.

WHY: The CLI read-along runs the synchronizer against a real event loop.
The repeating timer must stop for good when cancelled, and the paced
engine must behave like a browser synthesizer: asynchronous start, an
end after the computed duration, pause/resume, and an "interrupted"
error for cancelled utterances.

HOW: Each test runs a small coroutine with asyncio.run(). Speaking
speeds are set very high so the scenarios finish in milliseconds.

RULES:
- No test sleeps longer than a fraction of a second
- Event order is asserted, exact timing is not
"""

from __future__ import annotations

import asyncio

import pytest

from speakit.core.playback import PlaybackState, PlaybackSynchronizer
from speakit.speech import AsyncioScheduler, EngineEventKind, PacedSpeechEngine, Utterance


# ---------------------------------------------------------------------------
# AsyncioScheduler
# ---------------------------------------------------------------------------


class TestAsyncioScheduler:
    def test_fires_repeatedly_until_cancelled(self):
        async def scenario():
            fired = []
            handle = AsyncioScheduler().call_every(0.01, lambda: fired.append(1))
            await asyncio.sleep(0.065)
            handle.cancel()
            count = len(fired)
            await asyncio.sleep(0.05)
            return count, len(fired)

        at_cancel, later = asyncio.run(scenario())
        assert at_cancel >= 3
        assert later == at_cancel

    def test_callback_may_cancel_its_own_timer(self):
        async def scenario():
            fired = []
            holder = {}

            def callback():
                fired.append(1)
                holder["handle"].cancel()

            holder["handle"] = AsyncioScheduler().call_every(0.005, callback)
            await asyncio.sleep(0.05)
            return len(fired)

        assert asyncio.run(scenario()) == 1

    def test_cancel_is_idempotent(self):
        async def scenario():
            handle = AsyncioScheduler().call_every(0.01, lambda: None)
            handle.cancel()
            handle.cancel()
            return handle.cancelled

        assert asyncio.run(scenario()) is True

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            AsyncioScheduler().call_every(0, lambda: None)


# ---------------------------------------------------------------------------
# PacedSpeechEngine
# ---------------------------------------------------------------------------


class TestPacedSpeechEngine:
    def test_duration_follows_words_and_rate(self):
        engine = PacedSpeechEngine(words_per_minute=150)
        utterance = Utterance(text="a b c d", rate=2.0, generation=1)
        assert engine.duration_for(utterance) == pytest.approx(0.8)

    def test_reports_start_then_end(self):
        async def scenario():
            events = []
            engine = PacedSpeechEngine(words_per_minute=60000)
            engine.speak(Utterance("a b c d", rate=1.0, generation=3), events.append)
            delivered_synchronously = list(events)
            await asyncio.sleep(0.05)
            return delivered_synchronously, events

        synchronous, events = asyncio.run(scenario())
        assert synchronous == []
        assert [e.kind for e in events] == [EngineEventKind.STARTED, EngineEventKind.ENDED]
        assert {e.generation for e in events} == {3}

    def test_cancel_reports_interrupted_for_old_generation(self):
        async def scenario():
            events = []
            engine = PacedSpeechEngine(words_per_minute=600)
            engine.speak(Utterance("a b c d", rate=1.0, generation=7), events.append)
            engine.cancel()
            await asyncio.sleep(0.02)
            return engine, events

        engine, events = asyncio.run(scenario())
        assert [e.kind for e in events] == [EngineEventKind.STARTED, EngineEventKind.ERRORED]
        assert events[-1].reason == "interrupted"
        assert events[-1].generation == 7
        assert engine.speaking is False

    def test_pause_holds_the_end_until_resume(self):
        async def scenario():
            events = []
            engine = PacedSpeechEngine(words_per_minute=1200)
            engine.speak(Utterance("one two", rate=1.0, generation=1), events.append)
            await asyncio.sleep(0.02)
            engine.pause()
            paused = engine.paused
            await asyncio.sleep(0.2)
            before_resume = [e.kind for e in events]
            engine.resume()
            await asyncio.sleep(0.2)
            return paused, before_resume, [e.kind for e in events]

        paused, before_resume, after = asyncio.run(scenario())
        assert paused is True
        assert before_resume == [EngineEventKind.STARTED]
        assert after == [EngineEventKind.STARTED, EngineEventKind.ENDED]

    def test_lists_voices(self):
        voices = PacedSpeechEngine().list_voices()
        assert voices[0].lang.startswith("en")


# ---------------------------------------------------------------------------
# Synchronizer on a real event loop
# ---------------------------------------------------------------------------


class TestSynchronizerOnEventLoop:
    def test_plays_to_the_end(self):
        async def scenario():
            done = asyncio.Event()
            engine = PacedSpeechEngine(words_per_minute=6000)
            with PlaybackSynchronizer(engine, AsyncioScheduler(), base_words_per_minute=6000) as player:
                player.subscribe(lambda snap: done.set() if snap.state == PlaybackState.ENDED else None)
                player.load("one two three four five six seven eight nine ten")
                player.play()
                await asyncio.wait_for(done.wait(), timeout=2.0)
                return player.state, player.current_word_index

        state, index = asyncio.run(scenario())
        assert state == PlaybackState.ENDED
        assert index == 9

    def test_interrupted_event_after_stop_is_ignored(self):
        async def scenario():
            engine = PacedSpeechEngine(words_per_minute=150)
            with PlaybackSynchronizer(engine, AsyncioScheduler()) as player:
                player.load("one two three four five six")
                player.play()
                await asyncio.sleep(0.01)
                player.stop()
                await asyncio.sleep(0.02)
                return player.state, player.last_error

        state, last_error = asyncio.run(scenario())
        assert state == PlaybackState.IDLE
        assert last_error is None
