"""
Permit cache keys and an in-memory permit store.

A permit authorizes one payer account to spend up to a cap of one asset on
one network to one payee. The cache key covers all five of those fields so a
permit signed for one account can never be served to another.

Key layout:

    x402-permit:<len>:<network>|<len>:<asset>|<len>:<pay_to>|<len>:<cap>|<len>:<account>

Each field is length-prefixed, so the encoding is injective for any field
content and every value (the account in particular) appears verbatim.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from .errors import PermitCacheError

if TYPE_CHECKING:
    from .config import AgentConfig

logger = logging.getLogger(__name__)


PERMIT_KEY_PREFIX = "x402-permit:"

DEFAULT_MAX_ENTRIES = 1000
DEFAULT_PRUNE_COUNT = 100
DEFAULT_EXPIRY_MARGIN_SECONDS = 30


@dataclass(frozen=True)
class PermitCacheKeyInput:
    """Parameters that scope a permit. All values are opaque strings."""

    network: str
    asset: str
    pay_to: str
    cap: str
    account: str


def _encode_field(value: str) -> str:
    return f"{len(value)}:{value}"


def build_permit_cache_key(key_input: PermitCacheKeyInput) -> str:
    """Build the cache key for a permit."""
    fields = (
        key_input.network,
        key_input.asset,
        key_input.pay_to,
        key_input.cap,
        key_input.account,
    )
    return PERMIT_KEY_PREFIX + "|".join(_encode_field(str(v)) for v in fields)


@dataclass
class CachedPermit:
    """A signed permit held by the cache."""

    key: str
    account: str
    payload: dict[str, Any]
    signature: str = field(repr=False)
    valid_before: int = 0  # unix seconds, 0 = no expiry
    created_at: float = field(default_factory=time.time)

    def is_live(self, margin_seconds: int = 0, now: Optional[float] = None) -> bool:
        if self.valid_before == 0:
            return True
        now = time.time() if now is None else now
        return self.valid_before - margin_seconds > now

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "account": self.account,
            "payload": self.payload,
            "valid_before": self.valid_before,
            "created_at": self.created_at,
        }


SignFn = Callable[[PermitCacheKeyInput], tuple[dict[str, Any], str, int]]


class PermitCache:
    """Thread-safe in-memory permit store.

    Usage:
        cache = PermitCache()
        key_input = PermitCacheKeyInput(
            network="eip155:8453", asset=usdc, pay_to=payee,
            cap="1000000", account=signer.address,
        )
        permit = cache.get_or_sign(key_input, sign_permit)

    ``get_or_sign`` holds a per-key lock while signing, so concurrent callers
    asking for the same permit trigger one signature. Callers for different
    keys never wait on each other.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        prune_count: int = DEFAULT_PRUNE_COUNT,
        expiry_margin_seconds: int = DEFAULT_EXPIRY_MARGIN_SECONDS,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.prune_count = max(1, prune_count)
        self.expiry_margin_seconds = expiry_margin_seconds
        self._entries: dict[str, CachedPermit] = {}
        self._key_locks: dict[str, _KeyLock] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: "AgentConfig") -> "PermitCache":
        return cls(
            max_entries=config.permit_cache_max_entries,
            expiry_margin_seconds=config.permit_expiry_margin_seconds,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key_input: PermitCacheKeyInput) -> Optional[CachedPermit]:
        """Return a live permit, evicting it if it is about to expire."""
        key = build_permit_cache_key(key_input)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Permit cache miss: %s", key)
                return None
            if not entry.is_live(self.expiry_margin_seconds):
                del self._entries[key]
                logger.info("Evicted expiring permit: %s", key)
                return None
            logger.debug("Permit cache hit: %s", key)
            return entry

    def put(
        self,
        key_input: PermitCacheKeyInput,
        payload: dict[str, Any],
        signature: str,
        valid_before: int = 0,
    ) -> CachedPermit:
        """Store a signed permit, replacing any entry under the same key."""
        if not signature:
            raise PermitCacheError("Refusing to cache a permit without a signature")

        key = build_permit_cache_key(key_input)
        entry = CachedPermit(
            key=key,
            account=key_input.account,
            payload=dict(payload),
            signature=signature,
            valid_before=int(valid_before),
        )
        if not entry.is_live(self.expiry_margin_seconds):
            raise PermitCacheError(f"Refusing to cache an expired permit: {key}")

        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            if len(self._entries) > self.max_entries:
                self._prune_locked()
        return entry

    def invalidate(self, key_input: PermitCacheKeyInput) -> bool:
        """Drop a permit, e.g. after the payee rejected it."""
        key = build_permit_cache_key(key_input)
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info("Invalidated permit: %s", key)
        return removed

    def clear(self) -> None:
        """Drop every cached permit. In-flight signatures keep their key locks."""
        with self._lock:
            self._entries.clear()

    def get_or_sign(self, key_input: PermitCacheKeyInput, sign: SignFn) -> CachedPermit:
        """Return the cached permit or sign and cache a new one.

        ``sign`` returns ``(payload, signature, valid_before)``. Exceptions it
        raises propagate and leave the cache untouched.
        """
        cached = self.get(key_input)
        if cached is not None:
            return cached

        key = build_permit_cache_key(key_input)
        key_lock = self._acquire_key_lock(key)
        try:
            with key_lock.lock:
                cached = self.get(key_input)
                if cached is not None:
                    return cached
                payload, signature, valid_before = sign(key_input)
                logger.info("Signed new permit: %s", key)
                return self.put(key_input, payload, signature, valid_before)
        finally:
            self._release_key_lock(key, key_lock)

    def _acquire_key_lock(self, key: str) -> "_KeyLock":
        with self._lock:
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = _KeyLock()
                self._key_locks[key] = key_lock
            key_lock.users += 1
            return key_lock

    def _release_key_lock(self, key: str, key_lock: "_KeyLock") -> None:
        with self._lock:
            key_lock.users -= 1
            if key_lock.users == 0 and self._key_locks.get(key) is key_lock:
                del self._key_locks[key]

    def _prune_locked(self) -> None:
        # dicts keep insertion order, so the first keys are the oldest
        stale = list(self._entries.keys())[: self.prune_count]
        for key in stale:
            del self._entries[key]
        logger.info("Pruned %d permits from cache", len(stale))


@dataclass
class _KeyLock:
    """Per-key signing lock, removed once no caller holds or waits on it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0
