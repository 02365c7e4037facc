"""
XFound Backend — Abstract Chat Store Interface
================================================

What:  Abstract base class for the persistence operation the chat relay needs.
Why:   The relay only ever appends a message and reads back the snapshot.
       Depending on this narrow contract (not on SQLAlchemy) keeps the relay
       testable with an in-memory store and lets the storage engine change
       without touching socket code.
How:   ChatService implements append_message() against PostgreSQL.
Who:   Called by MessageRelay.handle_incoming().
"""

from abc import ABC, abstractmethod

from app.schemas.chat import ChatResponse


class ChatStore(ABC):
    """
    Storage collaborator of the message relay.

    Contract:
        - append_message() is atomic: either the message is durably part of
          the chat and the returned snapshot contains it, or an exception
          is raised and nothing was written
        - all failures surface as XFoundError subclasses
    """

    @abstractmethod
    async def append_message(
        self, chat_id: str, sender_id: str, content: str
    ) -> ChatResponse:
        """
        Append `{sender_id, content}` to chat `chat_id`.

        Args:
            chat_id: Chat identifier as received from the client (unvalidated).
            sender_id: User id of the author (unvalidated).
            content: Message text.

        Returns:
            ChatResponse snapshot including the new message as its last entry.

        Raises:
            NotFoundError: The chat does not exist or the id is malformed.
            ValidationError: The sender id is malformed.
            DatabaseError: The storage layer failed.
        """
        ...
