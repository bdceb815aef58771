"""
Local notifications for incoming messages.

A MessageNotifier is a pure consumer of a chat's message stream: it never
mutates the store, it only turns new messages from the other participant
into Notification objects handed to a sink.
"""
from typing import Callable, List, Optional, Set

from pydantic import BaseModel

from .config import NotificationConfig
from .exceptions import UserNotFoundError
from .logging import get_component_logger
from .models import Message, describe_content
from .store import ChatStateStore
from .subscriptions import Subscription


class Notification(BaseModel):
    """What a system notification would show."""
    title: str
    body: str
    chat_id: str
    message_id: str


NotificationSink = Callable[[Notification], None]


def log_sink(notification: Notification) -> None:
    """Development sink: log instead of showing anything."""
    get_component_logger("notifications").info(
        "Notification would be shown",
        title=notification.title,
        body=notification.body,
        chat_id=notification.chat_id,
    )


def truncate_preview(text: str, limit: int) -> str:
    preview = text.replace("\n", " ").strip()
    if len(preview) > limit:
        preview = preview[:max(limit - 3, 0)] + "..."
    return preview


class MessageNotifier:
    """Notify one recipient about new messages in one chat."""

    def __init__(
        self,
        store: ChatStateStore,
        chat_id: str,
        recipient_id: str,
        sink: Optional[NotificationSink] = None,
        config: Optional[NotificationConfig] = None,
    ):
        self.store = store
        self.chat_id = chat_id
        self.recipient_id = recipient_id
        self.sink = sink or log_sink
        self.config = config or NotificationConfig()
        self.logger = get_component_logger("notifications")
        self._seen: Set[str] = set()
        self._subscription: Optional[Subscription] = None

    def start(self) -> "MessageNotifier":
        if self._subscription is not None or not self.config.enabled:
            return self
        # the replay is history, not news
        self._seen = {m.id for m in self.store.list_messages(self.chat_id)}
        self._subscription = self.store.subscribe_to_messages(self.chat_id, self._on_messages)
        self.logger.debug("Notifier started", chat_id=self.chat_id, recipient_id=self.recipient_id)
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def _on_messages(self, messages: List[Message]) -> None:
        for message in messages:
            if message.id in self._seen:
                continue
            self._seen.add(message.id)
            if message.sender_id == self.recipient_id:
                continue
            self.sink(self._build(message))

    def _build(self, message: Message) -> Notification:
        try:
            title = self.store.get_user(message.sender_id).display_name
        except UserNotFoundError:
            title = "New message"
        return Notification(
            title=title,
            body=truncate_preview(describe_content(message.content), self.config.preview_length),
            chat_id=message.chat_id,
            message_id=message.id,
        )
