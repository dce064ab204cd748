import threading
import time
from typing import Callable


class MonotonicClock:
    """
    出價用的時間來源（毫秒）

    系統時間往回跳時沿用上一次的值，保證每次寫入的 timestamp 不會變小
    """

    def __init__(self, source: Callable[[], float] = time.time):
        self._source = source
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            now = int(self._source() * 1000)
            if now < self._last:
                now = self._last
            self._last = now
            return now
