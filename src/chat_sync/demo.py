"""
Demo data: the users the offline mock shipped with, and a short
conversation between Alice and Bob.
"""
from typing import List, NamedTuple

from .models import User
from .store import ChatStateStore

DEMO_USERS = [
    ("1", "test@example.com", "Test User"),
    ("2", "alice@example.com", "Alice"),
    ("3", "bob@example.com", "Bob"),
]


class DemoResult(NamedTuple):
    chat_id: str
    message_ids: List[str]


def seed_demo_users(store: ChatStateStore) -> List[User]:
    """Register the demo users, skipping any already present."""
    existing = {user.id for user in store.list_users()}
    return [
        store.register_user(email, display_name, user_id=user_id)
        for user_id, email, display_name in DEMO_USERS
        if user_id not in existing
    ]


def run_demo_conversation(store: ChatStateStore) -> DemoResult:
    """Alice opens a chat with Bob and they exchange a few messages."""
    chat_id = store.create_chat("2", "3")
    message_ids = [store.send_message(chat_id, "2", "hi")]

    advance = getattr(store.clock, "advance", None)
    for sender_id, text in (("3", "hey Alice!"), ("2", "lunch tomorrow?")):
        if advance:
            advance(1)
        message_ids.append(store.send_message(chat_id, sender_id, text))

    store.mark_message_read(chat_id, message_ids[0])
    return DemoResult(chat_id, message_ids)
