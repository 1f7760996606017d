"""Registry of live browser sessions."""

import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from webpilot.interfaces import BrowserError, BrowserSession
from webpilot.logging_config import get_logger

# (browser_id, headless) -> new session
SessionFactory = Callable[[str, bool], BrowserSession]


class SessionRegistry:
    """
    Opens browser sessions through a factory and tracks them by session id.

    The factory decides which driver backs a session, so the same registry
    serves Chrome in production and the in-memory mock in tests.
    """

    def __init__(self, session_factory: SessionFactory):
        self._factory = session_factory
        self._sessions: Dict[str, BrowserSession] = {}
        self._lock = threading.RLock()
        self.logger = get_logger(__name__)

    def __len__(self) -> int:
        return len(self._sessions)

    def open_session(self, browser_id: str = "default", headless: bool = False) -> BrowserSession:
        """
        Start a new browser session.

        Raises:
            BrowserError: If the driver fails to start
        """
        session = self._factory(browser_id, headless)
        return self.register(session)

    def register(self, session: BrowserSession) -> BrowserSession:
        """Track a session created outside the factory."""
        with self._lock:
            self._sessions[session.session_id] = session
        self.logger.info(f"Registered session {session.session_id} (browser '{session.browser_id}')")
        return session

    def get(self, session_id: Optional[str]) -> Optional[BrowserSession]:
        """Return the live session with that id, or None."""
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and not session.is_active:
                # Browser went away underneath us
                del self._sessions[session_id]
                self.logger.warning(f"Dropped inactive session {session_id}")
                return None
            return session

    def last_used_at(self, session_id: str) -> Optional[datetime]:
        session = self.get(session_id)
        return session.last_used_at if session else None

    def close_session(self, session_id: str) -> bool:
        """
        Close a session and forget it.

        Returns:
            True if a session was closed, False if the id was unknown
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        try:
            session.close()
        except BrowserError as e:
            self.logger.error(f"Error while closing session {session_id}: {e}")
        self.logger.info(f"Closed session {session_id}")
        return True

    def close_all(self) -> int:
        """Close every tracked session."""
        with self._lock:
            session_ids = list(self._sessions)
        closed = sum(1 for session_id in session_ids if self.close_session(session_id))
        self.logger.info(f"Closed {closed} sessions")
        return closed

    def list_sessions(self) -> List[Dict[str, Any]]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [
            {
                "session_id": s.session_id,
                "browser_id": s.browser_id,
                "active": s.is_active,
                "created_at": s.created_at.isoformat(),
                "last_used_at": s.last_used_at.isoformat(),
            }
            for s in sessions
        ]
