"""In-memory session store for browser logins.

Sessions live only in process memory, keyed by a random 128-bit hex id.
A single readers-writer lock guards the map so lookups can run in
parallel while create, extend, destroy and the periodic reap are
exclusive. A daemon thread reaps expired sessions for the lifetime of
the process.
"""

import logging
import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Final, final

from django.conf import settings
from wsgidav.rw_lock import ReadWriteLock

if TYPE_CHECKING:
    from filehub.apps.accounts.models import User

logger = logging.getLogger(__name__)

# Session ID length in bytes (generates 32 hex chars)
_SESSION_ID_BYTES: Final = 16

_DEFAULT_TTL: Final = timedelta(hours=24)
_DEFAULT_REAP_INTERVAL: Final = 3600.0

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class Session:
    """A logged-in browser session."""

    id: str
    user: 'User'
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Check whether the session is past its expiry."""
        return now >= self.expires_at


@final
class SessionStore:
    """Concurrent map of session id to Session with expiry.

    The reaper thread starts on construction and removes expired
    sessions every ``reap_interval`` seconds.
    """

    def __init__(
        self,
        ttl: timedelta = _DEFAULT_TTL,
        reap_interval: float = _DEFAULT_REAP_INTERVAL,
        clock: Clock = _utcnow,
    ) -> None:
        """Initialize the store and start the reaper.

        Args:
            ttl: Lifetime of a session from creation or last extend.
            reap_interval: Seconds between reaper runs.
            clock: Source of the current aware UTC time.
        """
        self._ttl = ttl
        self._reap_interval = reap_interval
        self._clock = clock
        self._lock = ReadWriteLock()
        self._sessions: dict[str, Session] = {}
        self._stop_event = threading.Event()
        self._reaper = threading.Thread(
            target=self._reap_loop,
            name='SessionReaper',
            daemon=True,
        )
        self._reaper.start()

    def __len__(self) -> int:
        """Number of stored sessions, expired ones included."""
        self._lock.acquire_read()
        try:
            return len(self._sessions)
        finally:
            self._lock.release()

    @property
    def ttl(self) -> timedelta:
        """Lifetime of a session."""
        return self._ttl

    def create(self, user: 'User') -> Session:
        """Create a session for the user.

        Args:
            user: Authenticated user.

        Returns:
            The new Session.
        """
        now = self._clock()
        session = Session(
            id=secrets.token_hex(_SESSION_ID_BYTES),
            user=user,
            created_at=now,
            expires_at=now + self._ttl,
        )

        self._lock.acquire_write()
        try:
            self._sessions[session.id] = session
        finally:
            self._lock.release()

        logger.info(
            'Session created for user %s: %s',
            user.username,
            session.id[:8],
        )
        return session

    def get(self, session_id: str | None) -> Session | None:
        """Get a live session.

        An expired session is removed and reported as missing.

        Args:
            session_id: Session ID to look up.

        Returns:
            Session if found and not expired, None otherwise.
        """
        if not session_id:
            return None

        self._lock.acquire_read()
        try:
            session = self._sessions.get(session_id)
        finally:
            self._lock.release()

        if session is None:
            return None

        now = self._clock()
        if not session.is_expired(now):
            return session

        self._lock.acquire_write()
        try:
            # Re-check: an extend may have landed between the two locks
            current = self._sessions.get(session_id)
            if current is not None and current.is_expired(now):
                del self._sessions[session_id]
                logger.debug('Session expired on read: %s', session_id[:8])
                return None
            return current
        finally:
            self._lock.release()

    def extend(self, session_id: str) -> bool:
        """Reset a session's expiry to now plus the TTL.

        Args:
            session_id: Session ID to extend.

        Returns:
            True if the session was found, False otherwise.
        """
        self._lock.acquire_write()
        try:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.expires_at = self._clock() + self._ttl
            return True
        finally:
            self._lock.release()

    def destroy(self, session_id: str | None) -> bool:
        """Remove a session. Destroying a missing session is a no-op.

        Args:
            session_id: Session ID to remove.

        Returns:
            True if a session was removed, False otherwise.
        """
        if not session_id:
            return False

        self._lock.acquire_write()
        try:
            removed = self._sessions.pop(session_id, None)
        finally:
            self._lock.release()

        if removed is not None:
            logger.info('Session destroyed: %s', session_id[:8])
        return removed is not None

    def reap(self) -> int:
        """Remove every expired session.

        Returns:
            Number of sessions removed.
        """
        now = self._clock()
        self._lock.acquire_write()
        try:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.is_expired(now)
            ]
            for session_id in expired:
                del self._sessions[session_id]
        finally:
            self._lock.release()

        if expired:
            logger.info('Reaped %d expired sessions', len(expired))
        return len(expired)

    def stop(self) -> None:
        """Stop the reaper thread."""
        self._stop_event.set()

    def _reap_loop(self) -> None:
        while not self._stop_event.wait(timeout=self._reap_interval):
            try:
                self.reap()
            except Exception:
                logger.exception('Session reaper run failed')


_store: SessionStore | None = None
_store_lock = threading.Lock()


def get_session_store() -> SessionStore:
    """Get the process-wide session store, creating it on first use.

    Returns:
        Shared SessionStore configured from settings.
    """
    global _store  # noqa: WPS420
    with _store_lock:
        if _store is None:
            _store = SessionStore(
                ttl=timedelta(
                    seconds=getattr(settings, 'FILEHUB_SESSION_TTL', 86400),
                ),
                reap_interval=getattr(
                    settings,
                    'FILEHUB_SESSION_REAP_INTERVAL',
                    _DEFAULT_REAP_INTERVAL,
                ),
            )
        return _store
