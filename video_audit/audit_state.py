"""
Minimal in-memory TTL store for per-session audit form state.
"""
import threading
import time
from typing import Any, Dict, Optional

from video_audit.services.request_builder import DEFAULT_INPUT_MODE, DEFAULT_PLATFORM

DEFAULT_TTL = 1800


def new_state() -> Dict[str, Any]:
    """Return the state of a form nobody has submitted yet."""
    return {
        'platform': DEFAULT_PLATFORM,
        'input_mode': DEFAULT_INPUT_MODE,
        'script': '',
        'video_url': '',
        'result': None,
        'error': None,
        'in_flight': False
    }


class AuditStateStore:
    """
    Time-To-Live store with dict storage of {session_id: (expires_at, state)}.
    Purges expired entries on every operation.

    Only the latest result per session is kept; a new submit replaces it.
    begin() is the in-flight guard: it refuses while a call is pending.
    """

    def __init__(self, ttl: int = DEFAULT_TTL):
        """Initialize store with empty storage."""
        self.ttl = ttl
        self._storage = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Dict[str, Any]:
        """
        Retrieve the state for a session.

        Args:
            session_id: Browser session key.

        Returns:
            Copy of the stored state, or a fresh state if none or expired.
        """
        with self._lock:
            self._purge_expired()
            entry = self._storage.get(session_id)
            if entry is None:
                return new_state()
            return dict(entry[1])

    def begin(
        self,
        session_id: str,
        platform: str,
        input_mode: str,
        script: str = '',
        video_url: str = ''
    ) -> bool:
        """
        Mark an audit as in flight for this session.

        Records the submitted form values so the page can be re-rendered
        with them.

        Returns:
            False if an audit is already pending (nothing is changed),
            True otherwise.
        """
        with self._lock:
            self._purge_expired()
            entry = self._storage.get(session_id)
            state = dict(entry[1]) if entry else new_state()

            if state['in_flight']:
                return False

            state.update(
                platform=platform,
                input_mode=input_mode,
                script=script or '',
                video_url=video_url or '',
                in_flight=True
            )
            self._set(session_id, state)
            return True

    def finish(self, session_id: str, result: Optional[dict] = None, error: Optional[str] = None) -> None:
        """
        Store the outcome of the pending audit and clear the in-flight flag.

        The previous result is always replaced; on error it is cleared.
        """
        with self._lock:
            self._purge_expired()
            entry = self._storage.get(session_id)
            state = dict(entry[1]) if entry else new_state()
            state.update(
                result=None if error else result,
                error=error,
                in_flight=False
            )
            self._set(session_id, state)

    def is_in_flight(self, session_id: str) -> bool:
        """Return True while an audit is pending for this session."""
        return self.get(session_id)['in_flight']

    def reset(self, session_id: str) -> None:
        """Drop all state for a session unless an audit is pending."""
        with self._lock:
            entry = self._storage.get(session_id)
            if entry and entry[1]['in_flight']:
                return
            self._storage.pop(session_id, None)

    def _set(self, session_id: str, state: Dict[str, Any]) -> None:
        self._storage[session_id] = (time.time() + self.ttl, state)

    def _purge_expired(self) -> None:
        """Remove all expired entries from storage."""
        current_time = time.time()
        expired_keys = [
            key for key, (expires_at, _) in self._storage.items()
            if current_time > expires_at
        ]
        for key in expired_keys:
            del self._storage[key]
