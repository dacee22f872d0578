"""Help chat endpoints for Nivaran API v1.

Wraps the rule-based responder in server-held chat sessions.  A
session is created by ``POST /chat/sessions`` and addressed by its id
afterwards; transcripts live only as long as the session.  ``POST
/chat/respond`` answers one message without any session state.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from src.models.chat import ChatAction, ChatMessage, ChatResponse
from src.models.enums import ChatWindowState
from src.services.chat_session import ChatSession, ChatSessionRegistry
from src.services.chatbot import ChatbotService

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ChatMessageRequest(BaseModel):
    message: str = Field(..., max_length=2000)


class ChatSessionResponse(BaseModel):
    """Snapshot of a chat widget."""

    session_id: str
    state: ChatWindowState
    messages: list[ChatMessage]
    suggestions: list[str]
    is_typing: bool
    last_action: ChatAction | None = None

    @classmethod
    def of(cls, session: ChatSession) -> ChatSessionResponse:
        return cls(
            session_id=session.session_id,
            state=session.state,
            messages=list(session.messages),
            suggestions=list(session.suggestions),
            is_typing=session.is_typing,
            last_action=session.last_action,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _chatbot(request: Request) -> ChatbotService:
    chatbot = getattr(request.app.state, "chatbot", None)
    if chatbot is None:
        raise HTTPException(status_code=503, detail="Chat assistant not available")
    return chatbot


def _registry(request: Request) -> ChatSessionRegistry:
    registry = getattr(request.app.state, "chat_sessions", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Chat assistant not available")
    return registry


def _session(request: Request, session_id: str) -> ChatSession:
    session = _registry(request).get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return session


# ---------------------------------------------------------------------------
# Stateless endpoints
# ---------------------------------------------------------------------------


@router.post("/respond", response_model=ChatResponse)
async def respond(body: ChatMessageRequest, request: Request) -> ChatResponse:
    """One-shot reply for *message*, no transcript kept."""
    return _chatbot(request).generate_response(body.message)


@router.get("/quick-replies")
async def quick_replies(request: Request) -> dict:
    return {"quick_replies": _chatbot(request).get_quick_replies()}


@router.get("/categories/{category}", response_model=ChatResponse)
async def category_info(category: str, request: Request) -> ChatResponse:
    """Canned explanation of a complaint category, with a generic fallback."""
    return _chatbot(request).get_category_info(category)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.post("/sessions", response_model=ChatSessionResponse, status_code=201)
async def create_session(request: Request) -> ChatSessionResponse:
    """Start a chat session and open it, which posts the greeting."""
    session = _registry(request).create()
    session.open()
    logger.info("api.chat.session_created", session_id=session.session_id)
    return ChatSessionResponse.of(session)


@router.get("/sessions/{session_id}", response_model=ChatSessionResponse)
async def get_session(session_id: str, request: Request) -> ChatSessionResponse:
    return ChatSessionResponse.of(_session(request, session_id))


@router.post("/sessions/{session_id}/messages", response_model=ChatSessionResponse)
async def send_message(session_id: str, body: ChatMessageRequest, request: Request) -> ChatSessionResponse:
    """Post a user message; the reply is in the returned transcript.

    Blank messages are ignored and leave the transcript unchanged.
    """
    session = _session(request, session_id)
    try:
        await session.send(body.message)
    except Exception:
        logger.error("api.chat.send_failed", session_id=session_id, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process chat message") from None
    return ChatSessionResponse.of(session)


@router.post("/sessions/{session_id}/quick-reply", response_model=ChatSessionResponse)
async def send_quick_reply(session_id: str, body: ChatMessageRequest, request: Request) -> ChatSessionResponse:
    session = _session(request, session_id)
    try:
        await session.quick_reply(body.message)
    except Exception:
        logger.error("api.chat.quick_reply_failed", session_id=session_id, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process chat message") from None
    return ChatSessionResponse.of(session)


@router.post("/sessions/{session_id}/open", response_model=ChatSessionResponse)
async def open_session(session_id: str, request: Request) -> ChatSessionResponse:
    session = _session(request, session_id)
    session.open()
    return ChatSessionResponse.of(session)


@router.post("/sessions/{session_id}/minimize", response_model=ChatSessionResponse)
async def minimize_session(session_id: str, request: Request) -> ChatSessionResponse:
    session = _session(request, session_id)
    session.minimize()
    return ChatSessionResponse.of(session)


@router.post("/sessions/{session_id}/close", response_model=ChatSessionResponse)
async def close_session(session_id: str, request: Request) -> ChatSessionResponse:
    session = _session(request, session_id)
    session.close()
    return ChatSessionResponse.of(session)


@router.post("/sessions/{session_id}/reset", response_model=ChatSessionResponse)
async def reset_session(session_id: str, request: Request) -> ChatSessionResponse:
    session = _session(request, session_id)
    session.reset()
    return ChatSessionResponse.of(session)


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, request: Request) -> dict:
    if not _registry(request).remove(session_id):
        raise HTTPException(status_code=404, detail="Chat session not found")
    return {"success": True}
