from __future__ import annotations

from taskloom.rate_limit import RateLimiter


class _Pipeline:
  def __init__(self, store: dict[str, int]) -> None:
    self._store = store
    self._key = ""

  def incr(self, key: str, amount: int) -> None:
    self._key = key
    self._store[key] = self._store.get(key, 0) + amount

  def ttl(self, key: str) -> None:
    pass

  def execute(self) -> list[int]:
    return [self._store[self._key], -1]


class _RedisClient:
  def __init__(self) -> None:
    self.store: dict[str, int] = {}
    self.expiries: dict[str, int] = {}

  def pipeline(self) -> _Pipeline:
    return _Pipeline(self.store)

  def expire(self, key: str, seconds: int) -> None:
    self.expiries[key] = seconds


def test_memory_window_blocks_after_limit() -> None:
  limiter = RateLimiter()
  assert limiter.hit("login:a", limit=2, window_seconds=60) == (True, 0)
  assert limiter.hit("login:a", limit=2, window_seconds=60) == (True, 0)
  allowed, retry = limiter.hit("login:a", limit=2, window_seconds=60)
  assert allowed is False
  assert retry >= 1

  limiter.reset_prefix("login:")
  assert limiter.hit("login:a", limit=2, window_seconds=60) == (True, 0)


def test_redis_window_counts_in_the_shared_client() -> None:
  limiter = RateLimiter()
  client = _RedisClient()
  limiter._redis = client
  assert limiter.hit("login:b", limit=1, window_seconds=30) == (True, 0)
  assert client.expiries == {"rl:login:b": 30}
  assert limiter.hit("login:b", limit=1, window_seconds=30) == (False, 30)
  assert client.store["rl:login:b"] == 2
