"""
Data model for chat-sync.

Users, two-party chats, messages with a tagged text/image content union,
denormalized last-message summaries and ephemeral typing status.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class UserStatus(str, Enum):
    """User presence."""
    ONLINE = "online"
    OFFLINE = "offline"


class MessageKind(str, Enum):
    """Message content kinds."""
    TEXT = "text"
    IMAGE = "image"


class User(BaseModel):
    """A registered chat user."""
    id: str
    email: str
    display_name: str
    photo_url: Optional[str] = None
    status: UserStatus = UserStatus.OFFLINE


class TextContent(BaseModel):
    """Plain text message body."""
    kind: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """Image message body; file_ref is the URL returned by the upload relay."""
    kind: Literal["image"] = "image"
    file_ref: str


MessageContent = Annotated[Union[TextContent, ImageContent], Field(discriminator="kind")]


def describe_content(content: Union[TextContent, ImageContent]) -> str:
    """Short human preview of a message body."""
    if isinstance(content, TextContent):
        return content.text
    elif isinstance(content, ImageContent):
        return "Photo"
    raise TypeError(f"Unsupported message content: {type(content).__name__}")


class Message(BaseModel):
    """A message inside a chat. Immutable except for the read flag."""
    id: str
    chat_id: str
    sender_id: str
    content: MessageContent
    timestamp: datetime
    read: bool = False

    @property
    def kind(self) -> MessageKind:
        return MessageKind(self.content.kind)

    @property
    def text(self) -> Optional[str]:
        if isinstance(self.content, TextContent):
            return self.content.text
        return None

    @property
    def file_ref(self) -> Optional[str]:
        if isinstance(self.content, ImageContent):
            return self.content.file_ref
        return None


class LastMessage(BaseModel):
    """Denormalized summary of the latest message in a chat."""
    text: str = ""
    sender_id: str = ""
    timestamp: datetime
    kind: MessageKind = MessageKind.TEXT

    @classmethod
    def empty(cls, timestamp: datetime) -> "LastMessage":
        """Summary for a chat nobody has written in yet."""
        return cls(timestamp=timestamp)

    @classmethod
    def from_message(cls, message: Message) -> "LastMessage":
        """Project a message onto the chat summary."""
        content = message.content
        if isinstance(content, TextContent):
            text = content.text
        elif isinstance(content, ImageContent):
            text = ""
        else:
            raise TypeError(f"Unsupported message content: {type(content).__name__}")

        return cls(
            text=text,
            sender_id=message.sender_id,
            timestamp=message.timestamp,
            kind=MessageKind(content.kind),
        )


class Chat(BaseModel):
    """A two-party conversation."""
    id: str
    participants: List[str]
    created_at: datetime
    last_message: LastMessage

    @field_validator('participants')
    @classmethod
    def validate_participants(cls, v):
        if len(v) != 2 or v[0] == v[1]:
            raise ValueError("a chat has exactly two distinct participants")
        return v

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants


class TypingStatus(BaseModel):
    """Ephemeral per-chat, per-user typing flag."""
    chat_id: str
    user_id: str
    is_typing: bool = False
    timestamp: datetime
