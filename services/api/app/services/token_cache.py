from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CachedToken:
    value: str
    expires_at: float


class TokenCache:
    """Holds one upstream access token and the moment it stops being usable.

    Expiry is checked on every read; a token inside ``refresh_margin_seconds``
    of its expiry counts as already expired.
    """

    def __init__(
        self,
        *,
        refresh_margin_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._refresh_margin_seconds = refresh_margin_seconds
        self._clock = clock
        self._token: CachedToken | None = None
        self._lock = threading.Lock()

    def get(self) -> str | None:
        with self._lock:
            token = self._token
            if token is None:
                return None
            if self._clock() >= token.expires_at - self._refresh_margin_seconds:
                self._token = None
                return None
            return token.value

    def put(self, value: str, *, expires_in_seconds: float) -> None:
        with self._lock:
            self._token = CachedToken(value=value, expires_at=self._clock() + expires_in_seconds)

    def get_or_fetch(self, fetch: Callable[[], tuple[str, float]]) -> str:
        cached = self.get()
        if cached is not None:
            return cached
        value, expires_in = fetch()
        self.put(value, expires_in_seconds=expires_in)
        return value

    def clear(self) -> None:
        with self._lock:
            self._token = None
