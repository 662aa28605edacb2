"""
Expiring Key Set
Process-local dedup guard for recently dialed leads
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class ExpiringKeySet:
    """
    Set of keys that expire after a fixed TTL.

    Backed by a key -> expiry map. Expired keys are purged lazily on
    lookup and size queries, so the map never grows past the number of
    keys added within one TTL window. Not persisted; starts empty on
    every process start.
    """

    def __init__(
        self,
        ttl_seconds: float = 600,
        clock: Callable[[], datetime] = utc_now
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._expiry: Dict[str, datetime] = {}

    def add(self, key: str, ttl_seconds: Optional[float] = None) -> None:
        """Add or refresh a key."""
        ttl = timedelta(seconds=ttl_seconds) if ttl_seconds is not None else self.ttl
        self._expiry[key] = self._clock() + ttl

    def discard(self, key: str) -> None:
        self._expiry.pop(key, None)

    def purge_expired(self) -> int:
        """Drop expired keys; returns how many were removed."""
        now = self._clock()
        expired = [key for key, expires_at in self._expiry.items() if expires_at <= now]
        for key in expired:
            del self._expiry[key]
        if expired:
            logger.debug(f"Dedup set purged {len(expired)} expired keys")
        return len(expired)

    def __contains__(self, key: str) -> bool:
        expires_at = self._expiry.get(key)
        if expires_at is None:
            return False
        if expires_at <= self._clock():
            del self._expiry[key]
            return False
        return True

    def __len__(self) -> int:
        self.purge_expired()
        return len(self._expiry)
