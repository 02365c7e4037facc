"""
XFound Backend — Real-time Message Relay
==========================================

What:  Persists chat messages arriving on the socket and fans them out to
       the recipient (if online) and back to the sender.
Why:   Both parties of a negotiation see new messages without polling, while
       the database stays the source of truth for anyone offline.
How:   append to storage → look up recipient in the PresenceDirectory →
       forward → acknowledge the sender.
Who:   Called by the /ws/chat endpoint for `register`, `send_message` and
       socket close.

Relay Flow (send_message):
    ┌──────────┐    ┌──────────────┐    ┌─────────────┐    ┌───────────────┐
    │  Sender  │───▶│  ChatStore   │───▶│  Presence   │───▶│  Recipient    │
    │  socket  │    │  append      │    │  lookup     │    │  (if online)  │
    └──────────┘    └──────────────┘    └─────────────┘    └───────────────┘
          ▲                                                        │
          └──────────────── message_sent (always on success) ──────┘

Guarantees:
    - best-effort single delivery; no retry, no queueing
    - per-socket ordering comes from the socket loop awaiting each frame
    - a storage failure never emits receive_message or message_sent; the
      sender gets message_failed and the error is logged
    - the append is not cancelled when the sender disconnects mid-persist;
      the later emits then hit a closed socket and are dropped by the session
"""

import logging
from typing import Any, Optional, Protocol

from app.exceptions import XFoundError
from app.schemas.chat import ChatResponse
from app.services.chat_store import ChatStore
from app.services.presence import PresenceDirectory

logger = logging.getLogger(__name__)

# Outbound event names
RECEIVE_MESSAGE = "receive_message"
MESSAGE_SENT = "message_sent"
MESSAGE_FAILED = "message_failed"


class RelaySession(Protocol):
    """What the relay needs from a transport session."""

    session_id: str

    async def emit(self, event: str, data: Any) -> None:
        ...


class MessageRelay:
    """
    Socket-facing chat coordinator.

    The presence directory is passed in, not created here, so the same
    instance can be inspected by the health endpoint and replaced in tests.
    """

    def __init__(self, presence: PresenceDirectory, store: ChatStore):
        self.presence = presence
        self.store = store

    # ── Presence ──────────────────────────────────────────────────────────

    def register(self, session: RelaySession, user_id: str) -> None:
        previous = self.presence.register(user_id, session)
        if previous is not None:
            logger.info(
                "User %s re-registered: session %s replaces %s",
                user_id, session.session_id, previous.session_id,
            )
        else:
            logger.info("User %s registered on session %s", user_id, session.session_id)

    def disconnect(self, session: RelaySession) -> Optional[str]:
        user_id = self.presence.unregister(session)
        if user_id is not None:
            logger.info("User %s went offline (session %s closed)", user_id, session.session_id)
        else:
            logger.debug("Session %s closed without an active registration", session.session_id)
        return user_id

    # ── Messages ──────────────────────────────────────────────────────────

    async def handle_incoming(
        self,
        sender_session: RelaySession,
        chat_id: str,
        sender_id: str,
        recipient_id: str,
        content: str,
    ) -> Optional[ChatResponse]:
        """
        Persist one message and deliver it.

        Returns:
            The updated chat snapshot, or None when persisting failed.
        """
        try:
            snapshot = await self.store.append_message(chat_id, sender_id, content)
        except XFoundError as e:
            logger.error(
                "Message from %s in chat %s was not stored: %s | Context: %s",
                sender_id, chat_id, e.message, e.context,
            )
            await sender_session.emit(
                MESSAGE_FAILED,
                {"error": e.code, "message": e.message, "chatId": chat_id},
            )
            return None
        except Exception as e:
            logger.error(
                "Message from %s in chat %s was not stored: %s",
                sender_id, chat_id, str(e), exc_info=True,
            )
            await sender_session.emit(
                MESSAGE_FAILED,
                {
                    "error": "database_error",
                    "message": "Could not store the message. Please try again.",
                    "chatId": chat_id,
                },
            )
            return None

        payload = snapshot.model_dump(mode="json")

        recipient_session = self.presence.lookup(recipient_id)
        if recipient_session is not None:
            await recipient_session.emit(RECEIVE_MESSAGE, payload)
        else:
            logger.debug("Recipient %s offline; message kept in chat %s", recipient_id, chat_id)

        await sender_session.emit(MESSAGE_SENT, payload)
        return snapshot
