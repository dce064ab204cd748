"""
並發控制工具

每個房間一把鎖，確保同一個房間的事件一次只處理一個：
- WebSocket 事件在 event loop 上同步處理
- HTTP 查詢（sync route）在 threadpool 裡執行，讀快照時也要拿同一把鎖

不同房間之間互不影響
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class RoomLocks:
    """房間代碼 -> RLock"""

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, room_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[room_id] = lock
            return lock

    @contextmanager
    def hold(self, room_id: str) -> Iterator[None]:
        """
        鎖定一個房間

        範例：
            with locks.hold(room_id):
                room = store.get_or_create(room_id)
                ...

        注意：
            - RLock，同一個執行緒可以重複進入
            - 不要同時持有兩個房間的鎖（避免 deadlock）
        """
        lock = self._lock_for(room_id)
        with lock:
            yield

    def discard(self, room_id: str) -> None:
        """房間被移除後丟掉它的鎖"""
        with self._registry_lock:
            self._locks.pop(room_id, None)

    def __len__(self) -> int:
        return len(self._locks)
