"""
Session registry for live calls.

This module provides the SessionRegistry class which tracks every active call
session in the process by its identifier. It is the only state shared between
sessions, so it supports nothing beyond insert, lookup and removal by id, and
guards each of those with a lock.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from callbridge.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class SessionRegistry:
    """
    Process-wide map from call identifier to its live session.

    A registry is created once per process and injected into whatever needs it
    (the media-stream manager registers sessions, each session removes itself
    when it closes).
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._sessions: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def add(self, session_id: str, session: Any) -> bool:
        """
        Register a session under its identifier.

        Args:
            session_id: Unique identifier of the call
            session: The session object

        Returns:
            bool: False if the identifier is already taken (nothing is replaced)
        """
        with self._lock:
            if session_id in self._sessions:
                logger.warning(f"Session id already registered: {session_id}")
                return False
            self._sessions[session_id] = session
        logger.info(f"Session registered: {session_id}")
        return True

    def get(self, session_id: str) -> Optional[Any]:
        """
        Get a live session by its identifier.

        Returns:
            The session, or None if no such session is registered
        """
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[Any]:
        """
        Remove a session from the registry. Removing an unknown id is a no-op.

        Returns:
            The removed session, or None
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info(f"Session removed: {session_id}")
        return session

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
