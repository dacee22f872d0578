from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from src.models.enums import ChatActionType, ChatSender


class ChatAction(BaseModel):
    type: ChatActionType
    data: dict[str, Any] = Field(default_factory=dict)


class ChatResponse(BaseModel):
    """Responder output: canned message, follow-ups and an optional action."""

    message: str
    suggestions: list[str] = Field(default_factory=list)
    action: ChatAction | None = None


class ChatMessage(BaseModel):
    """One entry of a session-scoped, never-persisted transcript."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    content: str
    sender: ChatSender
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
