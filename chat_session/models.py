"""
Conversation data model and backend wire payloads.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """One message in the conversation. Immutable once appended."""

    role: Role
    content: str

    def to_message(self) -> "ChatMessage":
        return ChatMessage(role=self.role, content=self.content)


class ChatMessage(BaseModel):
    role: Role
    content: str


class ChatRequest(BaseModel):
    """Body of the chat backend request."""

    messages: List[ChatMessage]

    @classmethod
    def from_history(cls, turns: Sequence[Turn], history_length: int) -> "ChatRequest":
        """Trailing window of at most history_length turns."""
        window = list(turns)[-history_length:] if history_length > 0 else []
        return cls(messages=[t.to_message() for t in window])


class SpeechRequest(BaseModel):
    text: str = Field(..., description="Completed assistant text to synthesize")


class MessageLogRequest(BaseModel):
    """Transcript log entry for one turn."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    from_: Role = Field(..., alias="from")
    user_id: str = Field(..., alias="userId", min_length=1)


class ButtonClickLogRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    button_clicked: str = Field(..., alias="buttonClicked")
