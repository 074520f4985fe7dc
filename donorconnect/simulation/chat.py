"""Conversations with synthetic donor personas ("bonding sessions")."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from donorconnect.events.bus import EventBus
from donorconnect.events.types import EventType
from donorconnect.rpc.client import AIDataClient

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ChatMessage:
    role: str
    content: str
    timestamp: str = field(default_factory=_now)
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatSession:
    id: str
    donor_id: str
    donor: dict[str, Any]
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: str = field(default_factory=_now)

    @property
    def donor_name(self) -> str:
        return f"{self.donor.get('firstName', '')} {self.donor.get('lastName', '')}".strip()


class DonorChat:
    """Opens, drives and closes persona chat sessions.

    Opening a session publishes ``bonding_started`` and closing it
    publishes ``bonding_ended``; the aggregator counts them.
    """

    def __init__(self, client: AIDataClient, bus: EventBus) -> None:
        self._client = client
        self._bus = bus
        self._sessions: dict[str, ChatSession] = {}

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> ChatSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise KeyError(f"No chat session {session_id!r}") from None

    async def start_session(self, donor_id: str) -> ChatSession:
        donor = await self._client.get_donor_details(donor_id)
        if not donor:
            raise LookupError(f"Donor {donor_id!r} not found")
        session = ChatSession(id=uuid.uuid4().hex, donor_id=donor_id, donor=dict(donor))
        session.messages.append(ChatMessage(
            role="ai",
            content=f"Hi, I'm {session.donor_name}. How can I help you today?",
        ))
        self._sessions[session.id] = session
        self._bus.publish(EventType.BONDING_STARTED, {
            "sessionId": session.id,
            "donorId": donor_id,
            "donorName": session.donor_name,
        })
        logger.info("Started bonding session %s with donor %s", session.id, donor_id)
        return session

    async def send(self, session_id: str, text: str) -> ChatMessage:
        session = self.get(session_id)
        session.messages.append(ChatMessage(role="user", content=text))
        data = await self._client.chat_with_donor(session.donor_id, text)
        data = data if isinstance(data, dict) else {"response": data}
        reply = ChatMessage(role="ai", content=str(data.get("response", "")), context=data)
        session.messages.append(reply)
        return reply

    def end_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        self._bus.publish(EventType.BONDING_ENDED, {
            "sessionId": session.id,
            "donorId": session.donor_id,
        })

    def end_all(self) -> None:
        for session_id in list(self._sessions):
            self.end_session(session_id)
