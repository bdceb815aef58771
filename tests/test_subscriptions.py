"""
Tests for subscription replay, fan-out and unsubscription.
"""
import pytest

from chat_sync.clock import ManualClock
from chat_sync.store import ChatStateStore
from chat_sync.subscriptions import SubscriptionRegistry


@pytest.fixture
def store():
    """Empty store with a manual clock."""
    return ChatStateStore(clock=ManualClock())


class TestReplay:
    """Test the immediate delivery on subscribe."""

    def test_empty_chat_list_is_delivered(self, store):
        """Zero chats still produce one synchronous call with an empty list."""
        calls = []

        store.subscribe_to_user_chats("2", calls.append)

        assert calls == [[]]

    def test_existing_messages_are_replayed(self, store):
        """Message subscribers start from the current history."""
        chat_id = store.create_chat("2", "3")
        store.send_message(chat_id, "2", "before")
        calls = []

        store.subscribe_to_messages(chat_id, calls.append)

        assert [[m.text for m in batch] for batch in calls] == [["before"]]

    def test_failing_replay_does_not_leave_subscription(self, store):
        """A listener that raises on replay is not kept around."""
        def broken(_chats):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.subscribe_to_user_chats("2", broken)

        assert store.stats()["chat_listeners"] == 0


class TestFanOut:
    """Test notification fan-out."""

    def test_independent_subscriptions_all_fire(self, store):
        """Two subscriptions for the same user both receive updates."""
        first, second = [], []
        store.subscribe_to_user_chats("2", first.append)
        store.subscribe_to_user_chats("2", second.append)

        store.create_chat("2", "3")

        assert len(first) == 2
        assert len(second) == 2

    def test_same_callable_registered_twice(self, store):
        """Handles are distinct even for one callable."""
        calls = []
        one = store.subscribe_to_user_chats("2", calls.append)
        store.subscribe_to_user_chats("2", calls.append)

        one.unsubscribe()
        store.create_chat("2", "3")

        # two replays, then one live update
        assert len(calls) == 3

    def test_failing_listener_does_not_block_others(self, store):
        """One broken listener does not stop the rest."""
        calls = []

        def broken(chats):
            if chats:
                raise RuntimeError("boom")

        store.subscribe_to_user_chats("2", broken)
        store.subscribe_to_user_chats("2", calls.append)

        chat_id = store.create_chat("2", "3")

        assert [c.id for c in calls[-1]] == [chat_id]
        assert store.get_chat(chat_id).participants == ["2", "3"]

    def test_failing_chat_listener_does_not_block_message_listeners(self, store):
        """send_message still reaches message subscribers after a chat-list listener fails."""
        chat_id = store.create_chat("2", "3")
        messages = []

        def broken(chats):
            if any(c.last_message.text for c in chats):
                raise RuntimeError("boom")

        store.subscribe_to_user_chats("3", broken)
        store.subscribe_to_messages(chat_id, messages.append)

        store.send_message(chat_id, "2", "hi")

        assert [m.text for m in messages[-1]] == ["hi"]

    def test_listeners_get_independent_payloads(self, store):
        """A listener mutating its payload does not affect the next one."""
        seen = []

        def greedy(chats):
            chats.clear()

        store.subscribe_to_user_chats("2", greedy)
        store.subscribe_to_user_chats("2", seen.append)

        chat_id = store.create_chat("2", "3")

        assert [c.id for c in seen[-1]] == [chat_id]


class TestUnsubscribe:
    """Test unsubscription guarantees."""

    def test_no_calls_after_unsubscribe(self, store):
        """Mutations after unsubscribe are not delivered."""
        chat_id = store.create_chat("2", "3")
        chats, messages, typing = [], [], []
        subs = [
            store.subscribe_to_user_chats("2", chats.append),
            store.subscribe_to_messages(chat_id, messages.append),
            store.subscribe_to_typing_status(chat_id, "3", typing.append),
        ]

        for sub in subs:
            sub.unsubscribe()
        store.send_message(chat_id, "3", "hello?")
        store.set_typing_status(chat_id, "3", True)

        assert len(chats) == 1
        assert len(messages) == 1
        assert typing == [False]
        assert store.stats()["chat_listeners"] == 0

    def test_unsubscribe_twice(self, store):
        """Unsubscribing is idempotent."""
        sub = store.subscribe_to_user_chats("2", lambda chats: None)

        sub.unsubscribe()
        sub.unsubscribe()

        assert sub.active is False

    def test_unsubscribe_during_fanout(self, store):
        """A listener removed mid fan-out is not called for that mutation."""
        calls = []
        later = None

        def first(chats):
            if chats:
                later.unsubscribe()

        store.subscribe_to_user_chats("2", first)
        later = store.subscribe_to_user_chats("2", calls.append)

        store.create_chat("2", "3")

        assert calls == [[]]


class TestRegistry:
    """Test the registry on its own."""

    def test_notify_returns_delivery_count(self):
        """notify reports how many listeners ran."""
        registry = SubscriptionRegistry("test")
        received = []
        registry.add("k", received.append)
        registry.add("k", received.append)
        registry.add("other", received.append)

        assert registry.notify("k", 1) == 2
        assert registry.notify("missing", 1) == 0
        assert received == [1, 1]
        assert registry.count() == 3
        assert registry.count("k") == 2

    def test_notify_counts_only_successful_listeners(self):
        """A listener that raises is not counted as delivered."""
        registry = SubscriptionRegistry("test")
        received = []

        def broken(payload):
            raise ValueError("bad payload")

        registry.add("k", broken)
        registry.add("k", received.append)

        assert registry.notify("k", {"n": 1}) == 1
        assert received == [{"n": 1}]

    def test_subscription_is_callable(self):
        """Calling the handle unsubscribes, like the mock's cleanup function."""
        registry = SubscriptionRegistry("test")
        sub = registry.add("k", lambda payload: None)

        sub()

        assert registry.count("k") == 0


if __name__ == "__main__":
    pytest.main([__file__])
