"""
Tests for the client-side typing tracker.
"""
import asyncio

import pytest

from chat_sync.clock import ManualClock
from chat_sync.config import TypingConfig
from chat_sync.store import ChatStateStore
from chat_sync.typing_indicator import TypingTracker


@pytest.fixture
def store():
    return ChatStateStore(clock=ManualClock())


@pytest.fixture
def chat_id(store):
    return store.create_chat("2", "3")


@pytest.mark.asyncio
async def test_keystrokes_start_typing_once(store, chat_id):
    """Repeated keystrokes emit a single typing transition."""
    seen = []
    store.subscribe_to_typing_status(chat_id, "2", seen.append)
    tracker = TypingTracker(store, chat_id, "2", config=TypingConfig(timeout=10))

    tracker.keystroke()
    tracker.keystroke()
    tracker.keystroke()

    assert seen == [False, True]
    tracker.stop()


@pytest.mark.asyncio
async def test_inactivity_stops_typing(store, chat_id):
    """After the timeout the watcher sees false again."""
    seen = []
    store.subscribe_to_typing_status(chat_id, "2", seen.append)
    tracker = TypingTracker(store, chat_id, "2", config=TypingConfig(timeout=0.05))

    tracker.keystroke()
    await asyncio.sleep(0.15)

    assert seen == [False, True, False]
    assert tracker.is_typing is False


@pytest.mark.asyncio
async def test_keystroke_extends_window(store, chat_id):
    """Activity pushes the timeout back."""
    tracker = TypingTracker(store, chat_id, "2", config=TypingConfig(timeout=0.1))

    tracker.keystroke()
    await asyncio.sleep(0.06)
    tracker.keystroke()
    await asyncio.sleep(0.06)

    assert store.get_typing_status(chat_id, "2") is True
    tracker.stop()


@pytest.mark.asyncio
async def test_stop_is_immediate(store, chat_id):
    """stop() clears the flag without waiting."""
    seen = []
    store.subscribe_to_typing_status(chat_id, "2", seen.append)
    tracker = TypingTracker(store, chat_id, "2", config=TypingConfig(timeout=10))

    tracker.keystroke()
    tracker.stop()
    tracker.stop()

    assert seen == [False, True, False]


def test_timeout_comes_from_config(store, chat_id):
    """The inactivity window is read from the typing config."""
    assert TypingTracker(store, chat_id, "2").timeout == TypingConfig().timeout
    assert TypingTracker(store, chat_id, "2", config=TypingConfig(timeout=7.5)).timeout == 7.5


def test_keystroke_without_loop_leaves_status_untouched(store, chat_id):
    """Outside an event loop keystroke fails without flipping the flag."""
    tracker = TypingTracker(store, chat_id, "2")

    with pytest.raises(RuntimeError):
        tracker.keystroke()

    assert tracker.is_typing is False
    assert store.get_typing_status(chat_id, "2") is False


if __name__ == "__main__":
    pytest.main([__file__])
