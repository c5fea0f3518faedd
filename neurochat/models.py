"""
Conversation data model.

Messages and sessions are frozen pydantic models: a change is always made by
building a replacement (``model_copy(update=...)``) and swapping it into the
store, never by mutating an instance in place.
"""

import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

_last_id = 0


def new_id() -> str:
    """Returns a strictly increasing id based on the nanosecond clock."""
    global _last_id
    _last_id = max(time.time_ns(), _last_id + 1)
    return str(_last_id)


def now_ms() -> int:
    return int(time.time() * 1000)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    ERROR = "error"


class FileAttachment(BaseModel):
    """A file attached to a user message. Content is text, base64 or a placeholder."""

    model_config = ConfigDict(frozen=True)

    name: str
    mime_type: str
    content: str

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_text(self) -> bool:
        return self.mime_type.startswith("text/")


class Message(BaseModel):
    """A single chat message. ``pending`` is true while the reply is still streaming."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    role: MessageRole
    text: str = ""
    timestamp: int = Field(default_factory=now_ms)
    attachment: FileAttachment | None = None
    pending: bool = False


class Session(BaseModel):
    """A named conversation. Message order is the order sent to the service."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    title: str
    messages: tuple[Message, ...] = ()
    created_at: int = Field(default_factory=now_ms)


class StoreState(BaseModel):
    """Snapshot of every session plus the active session reference."""

    model_config = ConfigDict(frozen=True)

    sessions: tuple[Session, ...] = ()
    active_session_id: str | None = None
