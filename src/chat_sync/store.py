"""
In-memory chat state store for chat-sync.

Owns users, chats, messages and typing status, and notifies subscribers
synchronously after every mutation. The query and mutation shapes mirror
what a document database backend would need (membership lookups, ordering
by timestamp) so a real backend only has to replace this class.
"""
import itertools
from typing import Callable, Dict, List, Optional, Tuple, Union

from .clock import Clock, SystemClock
from .config import StoreConfig
from .exceptions import (
    ChatNotFoundError,
    InvalidArgumentError,
    MessageNotFoundError,
    UnauthorizedError,
    UserNotFoundError,
)
from .logging import get_component_logger
from .models import (
    Chat,
    ImageContent,
    LastMessage,
    Message,
    TextContent,
    TypingStatus,
    User,
    UserStatus,
)
from .subscriptions import Subscription, SubscriptionRegistry

ChatsListener = Callable[[List[Chat]], None]
MessagesListener = Callable[[List[Message]], None]
TypingListener = Callable[[bool], None]


def _require(value: str, argument: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{argument} must be a non-empty string", argument=argument)
    return value


class ChatStateStore:
    """
    Registry of users, chats, messages and typing status.

    All operations run to completion before returning, including the
    fan-out to every listener registered for the affected keys.
    """

    def __init__(self, clock: Optional[Clock] = None, config: Optional[StoreConfig] = None):
        self.clock = clock or SystemClock()
        self.config = config or StoreConfig()
        self.logger = get_component_logger("store")

        self._users: Dict[str, User] = {}
        self._chats: Dict[str, Chat] = {}
        self._chat_by_pair: Dict[frozenset, str] = {}
        self._user_chats: Dict[str, List[str]] = {}
        self._messages: Dict[str, List[Message]] = {}
        self._typing: Dict[Tuple[str, str], TypingStatus] = {}

        self._chat_ids = itertools.count(1)
        self._message_ids = itertools.count(1)
        self._user_ids = itertools.count(1)

        self._chat_listeners: SubscriptionRegistry[str] = SubscriptionRegistry("user_chats")
        self._message_listeners: SubscriptionRegistry[str] = SubscriptionRegistry("chat_messages")
        self._typing_listeners: SubscriptionRegistry[Tuple[str, str]] = SubscriptionRegistry("typing")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def register_user(self, email: str, display_name: str, user_id: Optional[str] = None) -> User:
        """Create a user; ids are generated unless supplied."""
        _require(email, "email")
        _require(display_name, "display_name")

        if user_id is None:
            user_id = f"{self.config.user_id_prefix}{next(self._user_ids)}"
            while user_id in self._users:
                user_id = f"{self.config.user_id_prefix}{next(self._user_ids)}"
        else:
            _require(user_id, "user_id")
            if user_id in self._users:
                raise InvalidArgumentError("User id already registered", argument="user_id",
                                           context={"user_id": user_id})

        if any(u.email.lower() == email.lower() for u in self._users.values()):
            raise InvalidArgumentError("Email already registered", argument="email",
                                       context={"email": email})

        user = User(id=user_id, email=email, display_name=display_name)
        self._users[user_id] = user
        self.logger.log_mutation("register_user", user_id=user_id)
        return user.model_copy()

    def get_user(self, user_id: str) -> User:
        return self._get_user(user_id).model_copy()

    def list_users(self) -> List[User]:
        return [user.model_copy() for user in self._users.values()]

    def search_users_by_name(self, query: str) -> List[User]:
        """Case-insensitive substring match on display names."""
        needle = (query or "").strip().lower()
        if not needle:
            return []
        return [
            user.model_copy()
            for user in self._users.values()
            if needle in user.display_name.lower()
        ]

    def update_profile(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> User:
        user = self._get_user(user_id)
        if display_name is not None:
            user.display_name = _require(display_name, "display_name")
        if photo_url is not None:
            user.photo_url = _require(photo_url, "photo_url")
        self.logger.log_mutation("update_profile", user_id=user_id)
        return user.model_copy()

    def set_presence(self, user_id: str, status: Union[UserStatus, str]) -> User:
        user = self._get_user(user_id)
        try:
            user.status = UserStatus(status)
        except ValueError as e:
            raise InvalidArgumentError("Unknown presence status", argument="status",
                                       context={"status": status}, cause=e) from e
        self.logger.log_mutation("set_presence", user_id=user_id, status=user.status.value)
        return user.model_copy()

    def _get_user(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    def create_chat(self, user_a: str, user_b: str) -> str:
        """Return the chat id for the pair, creating the chat on first contact."""
        _require(user_a, "user_a")
        _require(user_b, "user_b")
        if user_a == user_b:
            raise InvalidArgumentError("A chat needs two different participants",
                                       argument="user_b", context={"user_id": user_a})

        pair = frozenset((user_a, user_b))
        existing = self._chat_by_pair.get(pair)
        if existing is not None:
            return existing

        chat_id = f"{self.config.chat_id_prefix}{next(self._chat_ids)}"
        now = self.clock.now()
        chat = Chat(
            id=chat_id,
            participants=[user_a, user_b],
            created_at=now,
            last_message=LastMessage.empty(now),
        )
        self._chats[chat_id] = chat
        self._chat_by_pair[pair] = chat_id
        self._messages[chat_id] = []
        for user_id in chat.participants:
            self._user_chats.setdefault(user_id, []).append(chat_id)

        self.logger.log_mutation("create_chat", chat_id=chat_id, participants=chat.participants)
        for user_id in chat.participants:
            self._notify_user_chats(user_id)
        return chat_id

    def get_chat(self, chat_id: str) -> Chat:
        return self._get_chat(chat_id).model_copy(deep=True)

    def get_chat_by_participants(self, user_a: str, user_b: str) -> Optional[Chat]:
        chat_id = self._chat_by_pair.get(frozenset((user_a, user_b)))
        if chat_id is None:
            return None
        return self.get_chat(chat_id)

    def list_chats_for_user(self, user_id: str) -> List[Chat]:
        """Chats containing user_id, most recently active first."""
        _require(user_id, "user_id")
        chats = [self._chats[chat_id] for chat_id in self._user_chats.get(user_id, [])]
        chats.sort(key=lambda c: c.id)
        chats.sort(key=lambda c: c.last_message.timestamp, reverse=True)
        return [chat.model_copy(deep=True) for chat in chats]

    def subscribe_to_user_chats(self, user_id: str, on_update: ChatsListener) -> Subscription:
        """Replay the user's chat list now and after every change to it."""
        _require(user_id, "user_id")
        subscription = self._chat_listeners.add(user_id, on_update)
        self._replay(self._chat_listeners, subscription, self.list_chats_for_user(user_id))
        return subscription

    def _get_chat(self, chat_id: str) -> Chat:
        chat = self._chats.get(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        return chat

    def _get_chat_for(self, chat_id: str, user_id: str) -> Chat:
        _require(chat_id, "chat_id")
        _require(user_id, "user_id")
        chat = self._get_chat(chat_id)
        if not chat.has_participant(user_id):
            raise UnauthorizedError("User is not a participant of this chat",
                                    user_id=user_id, chat_id=chat_id)
        return chat

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_message(
        self,
        chat_id: str,
        sender_id: str,
        content: Union[TextContent, ImageContent, str],
    ) -> str:
        """Append a message, refresh the chat summary and notify everyone."""
        chat = self._get_chat_for(chat_id, sender_id)

        if isinstance(content, str):
            content = TextContent(text=content)
        if isinstance(content, TextContent):
            if not content.text.strip():
                raise InvalidArgumentError("Message text must not be empty", argument="text")
        elif isinstance(content, ImageContent):
            if not content.file_ref.strip():
                raise InvalidArgumentError("Image message needs a file reference", argument="file_ref")
        else:
            raise InvalidArgumentError("Unsupported message content", argument="content",
                                       context={"type": type(content).__name__})

        messages = self._messages[chat_id]
        timestamp = self.clock.now()
        if messages and timestamp < messages[-1].timestamp:
            # clocks may step backwards; ordering within a chat may not
            timestamp = messages[-1].timestamp

        message = Message(
            id=f"{self.config.message_id_prefix}{next(self._message_ids)}",
            chat_id=chat_id,
            sender_id=sender_id,
            content=content.model_copy(),
            timestamp=timestamp,
        )
        messages.append(message)
        chat.last_message = LastMessage.from_message(message)

        self.logger.log_mutation("send_message", chat_id=chat_id,
                                 message_id=message.id, kind=message.kind.value)
        for user_id in chat.participants:
            self._notify_user_chats(user_id)
        self._message_listeners.notify(chat_id, self._snapshot_messages(chat_id))
        return message.id

    def send_text_message(self, chat_id: str, sender_id: str, text: str) -> str:
        return self.send_message(chat_id, sender_id, TextContent(text=text))

    def send_image_message(self, chat_id: str, sender_id: str, file_ref: str) -> str:
        return self.send_message(chat_id, sender_id, ImageContent(file_ref=file_ref))

    def list_messages(self, chat_id: str) -> List[Message]:
        """Messages of a chat, oldest first."""
        _require(chat_id, "chat_id")
        self._get_chat(chat_id)
        return self._snapshot_messages(chat_id)

    def get_message(self, chat_id: str, message_id: str) -> Message:
        return self._find_message(chat_id, message_id).model_copy(deep=True)

    def subscribe_to_messages(self, chat_id: str, on_update: MessagesListener) -> Subscription:
        """Replay the chat's messages now and after every send."""
        messages = self.list_messages(chat_id)
        subscription = self._message_listeners.add(chat_id, on_update)
        self._replay(self._message_listeners, subscription, messages)
        return subscription

    def mark_message_read(self, chat_id: str, message_id: str) -> None:
        """Flag a message as read. Read receipts are not broadcast."""
        message = self._find_message(chat_id, message_id)
        if not message.read:
            message.read = True
            self.logger.log_mutation("mark_message_read", chat_id=chat_id, message_id=message_id)

    def _find_message(self, chat_id: str, message_id: str) -> Message:
        _require(chat_id, "chat_id")
        _require(message_id, "message_id")
        self._get_chat(chat_id)
        for message in self._messages[chat_id]:
            if message.id == message_id:
                return message
        raise MessageNotFoundError(message_id, context={"chat_id": chat_id})

    def _snapshot_messages(self, chat_id: str) -> List[Message]:
        # stored in send order, which is already timestamp order
        return [message.model_copy(deep=True) for message in self._messages[chat_id]]

    # ------------------------------------------------------------------
    # Typing status
    # ------------------------------------------------------------------

    def set_typing_status(self, chat_id: str, user_id: str, is_typing: bool) -> None:
        """Overwrite the user's typing flag and tell whoever watches it."""
        self._get_chat_for(chat_id, user_id)
        key = (chat_id, user_id)
        self._typing[key] = TypingStatus(
            chat_id=chat_id,
            user_id=user_id,
            is_typing=bool(is_typing),
            timestamp=self.clock.now(),
        )
        self.logger.log_mutation("set_typing_status", chat_id=chat_id,
                                 user_id=user_id, is_typing=bool(is_typing))
        self._typing_listeners.notify(key, bool(is_typing))

    def get_typing_status(self, chat_id: str, user_id: str) -> bool:
        self._get_chat_for(chat_id, user_id)
        status = self._typing.get((chat_id, user_id))
        return status.is_typing if status else False

    def subscribe_to_typing_status(
        self,
        chat_id: str,
        watched_user_id: str,
        on_update: TypingListener,
    ) -> Subscription:
        """Watch one participant's typing flag in one chat."""
        current = self.get_typing_status(chat_id, watched_user_id)
        subscription = self._typing_listeners.add((chat_id, watched_user_id), on_update)
        self._replay(self._typing_listeners, subscription, current)
        return subscription

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def _notify_user_chats(self, user_id: str) -> None:
        if self._chat_listeners.count(user_id):
            self._chat_listeners.notify(user_id, self.list_chats_for_user(user_id))

    @staticmethod
    def _replay(registry: SubscriptionRegistry, subscription: Subscription, payload) -> None:
        try:
            registry.deliver(subscription, payload)
        except Exception:
            subscription.unsubscribe()
            raise

    def stats(self) -> Dict[str, int]:
        """Entity and listener counts, for diagnostics."""
        return {
            "users": len(self._users),
            "chats": len(self._chats),
            "messages": sum(len(m) for m in self._messages.values()),
            "typing": len(self._typing),
            "chat_listeners": self._chat_listeners.count(),
            "message_listeners": self._message_listeners.count(),
            "typing_listeners": self._typing_listeners.count(),
        }

