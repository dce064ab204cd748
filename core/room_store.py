"""
Room Store：保存所有進行中的房間

職責：
1. 第一次被引用時建立房間（預設設定來自 Settings）
2. 最後一個參與者離開時移除房間

不是全域變數：由 main.py 建立一個實例放在 app.state，再傳給 RoomManager
"""
import logging
from typing import Dict, List, Optional

from models import Room, RoomConfig

logger = logging.getLogger(__name__)


class RoomStore:
    """房間代碼 -> Room"""

    def __init__(self, default_budget: int = 100):
        self.default_budget = default_budget
        self.rooms: Dict[str, Room] = {}

    def get_or_create(self, room_id: str) -> Room:
        """
        取得房間，不存在時建立

        預設狀態：
        - config: budget=default_budget, reveal_bids=True, allow_join_after_lock=True
        - locked = False
        - topics / participants / bids 皆為空

        注意：
            冪等，而且永遠不會失敗
        """
        room = self.rooms.get(room_id)
        if room is None:
            room = Room(id=room_id, config=RoomConfig(budget=self.default_budget))
            self.rooms[room_id] = room
            logger.info(f"Created room {room_id}")
        return room

    def get(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def remove(self, room_id: str) -> None:
        """
        移除房間

        注意：
            呼叫者只能在房間已經沒有參與者時呼叫
        """
        room = self.rooms.pop(room_id, None)
        if room is not None:
            logger.info(f"Evicted empty room {room_id}")

    def codes(self) -> List[str]:
        return list(self.rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self.rooms

    def __len__(self) -> int:
        return len(self.rooms)
