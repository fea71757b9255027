"""In-process sliding-window limiter for meal analysis requests."""
import logging
import math
import threading
import time
from collections import defaultdict, deque
from typing import Optional

from app.config import settings

logger = logging.getLogger(__name__)


class AnalysisRateLimiter:
    """
    Counts analysis requests per key (the user id) over a sliding window.

    State lives in this process only; every worker enforces its own limit.
    """

    def __init__(self, max_requests: Optional[int] = None, window_seconds: Optional[int] = None):
        self.max_requests = max_requests or settings.analysis_rate_limit
        self.window_seconds = window_seconds or settings.analysis_rate_window_seconds
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def hit(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """
        Record one request for key.

        Returns:
            None if the request is allowed, otherwise the seconds until the
            oldest counted request leaves the window
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - self.window_seconds:
                hits.popleft()

            if len(hits) >= self.max_requests:
                retry_after = max(1, math.ceil(hits[0] + self.window_seconds - now))
                logger.warning(
                    "Analysis rate limit reached for %s (%d in %ds)",
                    key,
                    len(hits),
                    self.window_seconds,
                )
                return retry_after

            hits.append(now)
            return None

    def reset(self):
        with self._lock:
            self._hits.clear()


analysis_rate_limiter = AnalysisRateLimiter()
