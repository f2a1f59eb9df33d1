"""Fixed-window rate limiting for expensive create operations.

State lives in the injected store. ``MemoryRateLimitStore`` is local to one
process and resets on restart; a deployment with several workers must plug in
a shared keyed store exposing the same ``get``/``set``/``purge`` methods
and a ``lock``.
"""
import hashlib
import math
import threading
import time
from dataclasses import dataclass


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float
    limit: int


class MemoryRateLimitStore:
    def __init__(self):
        self._entries = {}
        self.lock = threading.Lock()

    def get(self, key):
        return self._entries.get(key)

    def set(self, key, entry):
        self._entries[key] = entry

    def purge(self, now):
        for key in [k for k, entry in self._entries.items() if entry.reset_time <= now]:
            del self._entries[key]

    def __len__(self):
        return len(self._entries)


class RateLimiter:
    def __init__(self, max_requests, window_seconds, store=None, clock=time.time):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.store = store if store is not None else MemoryRateLimitStore()
        self.clock = clock

    def check(self, identifier):
        now = self.clock()
        with self.store.lock:
            self.store.purge(now)
            entry = self.store.get(identifier)

            if entry is None or entry.reset_time <= now:
                entry = RateLimitEntry(count=1, reset_time=now + self.window_seconds)
                self.store.set(identifier, entry)
                return RateLimitResult(True, self.max_requests - 1, entry.reset_time, self.max_requests)

            if entry.count >= self.max_requests:
                return RateLimitResult(False, 0, entry.reset_time, self.max_requests)

            entry.count += 1
            self.store.set(identifier, entry)
            return RateLimitResult(True, self.max_requests - entry.count, entry.reset_time, self.max_requests)


def retry_after(result, now=None):
    now = time.time() if now is None else now
    return max(0, math.ceil(result.reset_time - now))


def rate_limit_headers(result, now=None):
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_time)),
        "Retry-After": "0" if result.allowed else str(retry_after(result, now)),
    }


def client_identifier(request, user_id=None):
    headers = request.headers
    identifier = (
        headers.get("CF-Connecting-IP")
        or headers.get("X-Real-IP")
        or (headers.get("X-Forwarded-For") or "").split(",")[0].strip()
        or request.remote_addr
        or "anonymous"
    )

    auth_header = headers.get("Authorization")
    if auth_header:
        # Credential ka hash, raw token kabhi key me nahi jata
        digest = hashlib.sha256(auth_header.encode("utf-8")).hexdigest()[:10]
        identifier = f"{identifier}-{digest}"
    elif user_id is not None:
        identifier = f"{identifier}-u{user_id}"
    return identifier
