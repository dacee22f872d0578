"""Chat sessions over the rule-based responder.

A :class:`ChatSession` is the transcript and window state of one chat
widget.  Nothing is persisted: dropping the session drops its history.

Window states::

    closed --open()--> open --minimize()--> minimized
      ^                 |  <--open()--------   |
      +----close()------+-------close()--------+

The first ``open()`` on an empty transcript adds the bot's greeting.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from uuid import uuid4

import structlog

from src.models.chat import ChatAction, ChatMessage
from src.models.enums import ChatSender, ChatWindowState
from src.services.chatbot import ChatbotService

logger = structlog.get_logger(__name__)

_GREETING_TRIGGER = "hello"


class ChatSession:
    """One chat widget: transcript, suggestions, typing flag and window state.

    Parameters
    ----------
    chatbot:
        Responder used for every reply.
    reply_delay:
        Seconds the bot "types" before each reply.
    sleep:
        Awaitable sleep, injectable so tests need not wait.
    """

    __slots__ = (
        "_chatbot",
        "_reply_delay",
        "_sleep",
        "is_typing",
        "last_action",
        "messages",
        "session_id",
        "state",
        "suggestions",
    )

    def __init__(
        self,
        chatbot: ChatbotService,
        *,
        session_id: str | None = None,
        reply_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._chatbot = chatbot
        self._reply_delay = reply_delay
        self._sleep = sleep
        self.session_id = session_id or uuid4().hex
        self.state = ChatWindowState.CLOSED
        self.messages: list[ChatMessage] = []
        self.suggestions: list[str] = []
        self.is_typing = False
        self.last_action: ChatAction | None = None

    # -- Window state ------------------------------------------------------------

    def open(self) -> None:
        """Show the chat expanded, greeting the user on first open."""
        self.state = ChatWindowState.OPEN
        if not self.messages:
            greeting = self._chatbot.generate_response(_GREETING_TRIGGER)
            self.messages.append(ChatMessage(content=greeting.message, sender=ChatSender.BOT))
            self.suggestions = list(greeting.suggestions)

    def minimize(self) -> None:
        if self.state == ChatWindowState.OPEN:
            self.state = ChatWindowState.MINIMIZED

    def close(self) -> None:
        self.state = ChatWindowState.CLOSED

    # -- Conversation ------------------------------------------------------------

    async def send(self, text: str) -> ChatMessage | None:
        """Post a user message and wait for the bot's reply.

        Blank input is ignored and returns ``None``.  The user message is
        in ``messages`` before the delay starts; the reply replaces the
        current suggestions when it lands.
        """
        content = text.strip()
        if not content:
            return None

        self.messages.append(ChatMessage(content=content, sender=ChatSender.USER))
        self.is_typing = True
        try:
            await self._sleep(self._reply_delay)
            response = self._chatbot.generate_response(content)
            reply = ChatMessage(content=response.message, sender=ChatSender.BOT)
            self.messages.append(reply)
            self.suggestions = list(response.suggestions)
            self.last_action = response.action
        finally:
            self.is_typing = False

        logger.debug("chat.replied", session_id=self.session_id, messages=len(self.messages))
        return reply

    async def quick_reply(self, text: str) -> ChatMessage | None:
        """Send a suggestion chip's text as if the user had typed it."""
        return await self.send(text)

    def reset(self) -> None:
        """Clear transcript, suggestions and last action."""
        self.messages.clear()
        self.suggestions = []
        self.last_action = None
        self.is_typing = False


class ChatSessionRegistry:
    """Live chat sessions keyed by id, oldest evicted past ``max_sessions``.

    In-memory only; production with several workers would need sticky
    routing or a shared session store.
    """

    __slots__ = ("_chatbot", "_max_sessions", "_reply_delay", "_sessions")

    def __init__(self, chatbot: ChatbotService, *, reply_delay: float = 1.0, max_sessions: int = 1000) -> None:
        self._chatbot = chatbot
        self._reply_delay = reply_delay
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, ChatSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> ChatSession:
        session = ChatSession(self._chatbot, reply_delay=self._reply_delay)
        self._sessions[session.session_id] = session
        while len(self._sessions) > self._max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info("chat.session_evicted", session_id=evicted)
        return session

    def get(self, session_id: str) -> ChatSession | None:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
        return session

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None
