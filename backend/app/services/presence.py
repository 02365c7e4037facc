"""
XFound Backend — Presence Directory
=====================================

What:  In-memory map from user identity to the live chat session of that user.
Why:   The message relay needs "which socket is user X on?" for every message.
How:   A dict keyed by user id, guarded by a lock held only for one map operation.
Who:   Owned by the application (app.state.presence) and handed to MessageRelay.
When:  Mutated on `register` frames and on socket close; read on every message.

Design Decision:
    Keyed by user (not by session) because lookups by recipient identity are
    the hot path. Removal is by session value because a close event only
    knows its own session, and the user may have re-registered from another
    socket since. Scanning by value means a stale session's close never
    evicts the newer mapping: the stale session is no longer a value.

    Alternative considered: a second session → user index for O(1) removal.
    Same observable behavior; not worth the extra bookkeeping at the sizes
    a single process serves.

Thread Safety:
    Handlers run on one event loop, so the lock is uncontended in practice.
    It makes the directory safe to share with threaded code too; no I/O and
    no await ever happens while it is held.
"""

import logging
import threading
from typing import Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

SessionT = TypeVar("SessionT")


class PresenceDirectory(Generic[SessionT]):
    """
    user_id → session handle, at most one session per user.

    Invariants:
        - a user id maps to at most one session (the most recent registration)
        - a session appears at most once among the values
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionT] = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, session: SessionT) -> Optional[SessionT]:
        """
        Map `user_id` to `session`, replacing any previous mapping.

        If the same session was registered under a different user id, that
        older entry is dropped so the session stays unique among the values.

        Returns:
            The session previously registered for this user, if any.
        """
        with self._lock:
            for uid, existing in list(self._sessions.items()):
                if existing is session and uid != user_id:
                    del self._sessions[uid]
            previous = self._sessions.get(user_id)
            self._sessions[user_id] = session
        return previous if previous is not session else None

    def lookup(self, user_id: str) -> Optional[SessionT]:
        """Return the current session of `user_id`, or None when offline."""
        with self._lock:
            return self._sessions.get(user_id)

    def unregister(self, session: SessionT) -> Optional[str]:
        """
        Remove the entry whose value is `session`.

        Returns:
            The user id that was removed, or None when the session was not
            (or no longer) registered.
        """
        with self._lock:
            for user_id, existing in self._sessions.items():
                if existing is session:
                    del self._sessions[user_id]
                    return user_id
        return None

    def online_users(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._sessions
