# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Cache for derived SigV4 signing keys.

Deriving a signing key costs four chained HMACs.  The key only changes
with the secret, the calendar day, the region and the service, so it is
derived once per combination and reused for every request signed that
day.
"""

import logging
import threading
from collections import OrderedDict

from s3gate.signing.digest import hmac_sha256


logger = logging.getLogger(__name__)

#: Default number of cached keys.  One entry per secret/day/region/service.
DEFAULT_MAX_ENTRIES = 64


def derive_signing_key(
    secret_key: str, date: str, region: str, service: str
) -> bytes:
    """Derive the SigV4 signing key.

    Args:
        secret_key: AWS secret access key.
        date: Date string (YYYYMMDD).
        region: AWS region.
        service: AWS service name.

    Returns:
        Derived 32-byte signing key.
    """
    k_date = hmac_sha256("AWS4" + secret_key, date)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, "aws4_request")


class SigningKeyCache:
    """Bounded, thread-safe cache of derived signing keys.

    Entries are keyed by ``(secret, date, region, service)`` so several
    credential sets can share one cache.  When full, the least recently
    used entry is evicted; stale days fall out naturally.

    Concurrent misses for the same key may both run the derivation.  The
    derivation is deterministic, so whichever write lands last stores the
    same value.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1: {max_entries}")
        self.max_entries = max_entries
        self.derivations = 0
        self._entries: OrderedDict[tuple[str, str, str, str], bytes] = (
            OrderedDict()
        )
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_signing_key(
        self, secret_key: str, date: str, region: str, service: str
    ) -> bytes:
        """Return the signing key, deriving and storing it on a miss.

        Args:
            secret_key: AWS secret access key.
            date: Date string (YYYYMMDD).
            region: AWS region.
            service: AWS service name.

        Returns:
            Derived 32-byte signing key.
        """
        cache_key = (secret_key, date, region, service)
        with self._lock:
            cached = self._entries.get(cache_key)
            if cached is not None:
                self._entries.move_to_end(cache_key)
                return cached

        # Derive outside the lock; a racing miss only duplicates work.
        signing_key = derive_signing_key(secret_key, date, region, service)

        with self._lock:
            self.derivations += 1
            self._entries[cache_key] = signing_key
            self._entries.move_to_end(cache_key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(
                    "Evicted signing key for %s/%s/%s",
                    evicted[1],
                    evicted[2],
                    evicted[3],
                )
        return signing_key

    def clear(self) -> None:
        """Drop all cached keys."""
        with self._lock:
            self._entries.clear()
