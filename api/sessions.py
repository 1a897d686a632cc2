"""
Session registry for the livecode playground.

Maps opaque session tokens (carried in the session cookie) to in-memory
session state. Sessions are never destroyed; they live as long as the process.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .shared.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    """A browser session and its free-form key-value bag."""

    token: str
    created_at: datetime
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "created_at": self.created_at.isoformat(),
            "data": dict(self.data),
        }


class SessionRegistry:
    """
    Process-wide map of session tokens to sessions.

    Lookups and insertions happen under a single lock so two connections
    presenting the same unknown token cannot race into duplicate sessions.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def resolve(self, token: Optional[str]) -> Tuple[str, bool]:
        """
        Return the session token to use for a request.

        Args:
            token: Token presented by the client, if any

        Returns:
            ``(token, is_new)``; a fresh token is minted when the presented
            one is absent or unknown.
        """
        with self._lock:
            if token and token in self._sessions:
                return token, False
            session = self._create_locked()
        logger.info("Created session %s", session.token)
        return session.token, True

    def create(self) -> Session:
        """Create a new session with an empty bag."""
        with self._lock:
            session = self._create_locked()
        logger.info("Created session %s", session.token)
        return session

    def get(self, token: Optional[str]) -> Optional[Session]:
        """Get a session by token, or None if it does not exist."""
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def list(self) -> List[Session]:
        """List all sessions, oldest first."""
        with self._lock:
            sessions = list(self._sessions.values())
        return sorted(sessions, key=lambda s: s.created_at)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, token: object) -> bool:
        return token in self._sessions

    def _create_locked(self) -> Session:
        token = uuid.uuid4().hex
        while token in self._sessions:
            token = uuid.uuid4().hex
        session = Session(token=token, created_at=datetime.now())
        self._sessions[token] = session
        return session
