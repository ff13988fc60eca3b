import threading
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional
from starlette.requests import Request


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """スライディングウィンドウ方式のレート制限（IP・ユーザー単位など）"""

    def __init__(self, max_attempts: int = 5, window_seconds: int = 300):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._last_sweep = time.monotonic()

    def _prune(self, hits: Deque[float], now: float):
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

    def _sweep(self, now: float):
        """期限切れの識別子を削除する（ウィンドウごとに1回）"""
        if now - self._last_sweep < self.window_seconds:
            return
        for identifier in list(self._hits):
            self._prune(self._hits[identifier], now)
            if not self._hits[identifier]:
                del self._hits[identifier]
        self._last_sweep = now

    def is_allowed(self, identifier: str) -> bool:
        """許可される場合は試行を記録して True を返す"""
        now = time.monotonic()
        with self._lock:
            self._sweep(now)
            hits = self._hits[identifier]
            self._prune(hits, now)
            if len(hits) >= self.max_attempts:
                return False
            hits.append(now)
            return True

    def get_remaining_time(self, identifier: str) -> int:
        """ブロック解除までの秒数（ブロックされていなければ 0）"""
        now = time.monotonic()
        with self._lock:
            hits = self._hits.get(identifier)
            if not hits:
                return 0
            self._prune(hits, now)
            if not hits:
                del self._hits[identifier]
            if len(hits) < self.max_attempts:
                return 0
            return max(0, int(self.window_seconds - (now - hits[0])) + 1)

    def reset(self, identifier: Optional[str] = None):
        with self._lock:
            if identifier is None:
                self._hits.clear()
            else:
                self._hits.pop(identifier, None)


login_limiter = RateLimiter(max_attempts=5, window_seconds=300)
api_limiter = RateLimiter(max_attempts=100, window_seconds=60)
