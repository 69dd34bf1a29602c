"""Issued HTTP Digest nonces and their replay window."""

import logging
import secrets
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Final, final

from django.conf import settings
from wsgidav.rw_lock import ReadWriteLock

logger = logging.getLogger(__name__)

# Nonce and opaque length in bytes (generates 32 hex chars)
_NONCE_BYTES: Final = 16

_DEFAULT_TTL: Final = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def new_opaque() -> str:
    """Generate an opaque value for a Digest challenge."""
    return secrets.token_hex(_NONCE_BYTES)


@final
class NonceStore:
    """Set of server-issued nonces, each valid for a fixed window.

    Expired nonces are dropped lazily when checked and by a daemon
    sweeper that runs once per window.
    """

    def __init__(
        self,
        ttl: timedelta = _DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the store and start the sweeper.

        Args:
            ttl: Replay window of a nonce.
            clock: Source of the current aware UTC time.
        """
        self._ttl = ttl
        self._clock = clock
        self._lock = ReadWriteLock()
        self._issued: dict[str, datetime] = {}
        self._stop_event = threading.Event()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name='NonceSweeper',
            daemon=True,
        )
        self._sweeper.start()

    def __len__(self) -> int:
        """Number of tracked nonces."""
        self._lock.acquire_read()
        try:
            return len(self._issued)
        finally:
            self._lock.release()

    def issue(self) -> str:
        """Issue a fresh nonce.

        Returns:
            Hex nonce string.
        """
        nonce = secrets.token_hex(_NONCE_BYTES)
        self._lock.acquire_write()
        try:
            self._issued[nonce] = self._clock()
        finally:
            self._lock.release()
        return nonce

    def is_valid(self, nonce: str | None) -> bool:
        """Check that a nonce was issued here and is inside its window.

        Args:
            nonce: Nonce echoed by the client.

        Returns:
            True if the nonce is known and fresh.
        """
        if not nonce:
            return False

        self._lock.acquire_read()
        try:
            issued_at = self._issued.get(nonce)
        finally:
            self._lock.release()

        if issued_at is None:
            return False
        if self._clock() - issued_at <= self._ttl:
            return True

        self._lock.acquire_write()
        try:
            self._issued.pop(nonce, None)
        finally:
            self._lock.release()
        return False

    def sweep(self) -> int:
        """Remove every expired nonce.

        Returns:
            Number of nonces removed.
        """
        cutoff = self._clock() - self._ttl
        self._lock.acquire_write()
        try:
            expired = [
                nonce
                for nonce, issued_at in self._issued.items()
                if issued_at < cutoff
            ]
            for nonce in expired:
                del self._issued[nonce]
        finally:
            self._lock.release()

        if expired:
            logger.debug('Swept %d expired nonces', len(expired))
        return len(expired)

    def stop(self) -> None:
        """Stop the sweeper thread."""
        self._stop_event.set()

    def _sweep_loop(self) -> None:
        interval = self._ttl.total_seconds()
        while not self._stop_event.wait(timeout=interval):
            try:
                self.sweep()
            except Exception:
                logger.exception('Nonce sweeper run failed')


_store: NonceStore | None = None
_store_lock = threading.Lock()


def get_nonce_store() -> NonceStore:
    """Get the process-wide nonce store, creating it on first use.

    Returns:
        Shared NonceStore configured from settings.
    """
    global _store  # noqa: WPS420
    with _store_lock:
        if _store is None:
            _store = NonceStore(
                ttl=timedelta(
                    seconds=getattr(settings, 'FILEHUB_NONCE_TTL', 300),
                ),
            )
        return _store
