from __future__ import annotations

from services.api.app.services.token_cache import TokenCache


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_token_expires_inside_refresh_margin() -> None:
    clock = _Clock()
    cache = TokenCache(refresh_margin_seconds=60, clock=clock)
    cache.put("tok-1", expires_in_seconds=3600)

    assert cache.get() == "tok-1"
    clock.now += 3539
    assert cache.get() == "tok-1"
    clock.now += 1
    assert cache.get() is None


def test_get_or_fetch_reuses_until_expiry() -> None:
    clock = _Clock()
    cache = TokenCache(refresh_margin_seconds=0, clock=clock)
    calls: list[int] = []

    def fetch() -> tuple[str, float]:
        calls.append(1)
        return f"tok-{len(calls)}", 100.0

    assert cache.get_or_fetch(fetch) == "tok-1"
    assert cache.get_or_fetch(fetch) == "tok-1"
    clock.now += 100
    assert cache.get_or_fetch(fetch) == "tok-2"
    assert len(calls) == 2


def test_clear_forgets_token() -> None:
    cache = TokenCache()
    cache.put("tok", expires_in_seconds=3600)
    cache.clear()
    assert cache.get() is None
