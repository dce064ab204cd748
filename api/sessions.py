"""
Session Registry：連線 -> 參與者 ID / 目前所在房間 / 送出佇列

屬於傳輸層：Room 裡的 Participant 不保存任何連線物件，
廣播時由這裡把 Outcome 的收件者（participant_id）對應到各自的佇列
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.state_machine import Outcome
from services.naming_service import generate_participant_id

logger = logging.getLogger(__name__)


@dataclass
class Session:
    participant_id: str
    room_id: Optional[str] = None
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue)


class SessionRegistry:
    """participant_id -> Session"""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def open(self) -> Session:
        """為新連線建立 Session（participant_id 在這裡產生）"""
        participant_id = generate_participant_id()
        while participant_id in self._sessions:
            participant_id = generate_participant_id()

        session = Session(participant_id=participant_id)
        self._sessions[participant_id] = session
        return session

    def close(self, session: Session) -> None:
        self._sessions.pop(session.participant_id, None)

    def get(self, participant_id: str) -> Optional[Session]:
        return self._sessions.get(participant_id)

    def in_room(self, room_id: str) -> List[Session]:
        return [s for s in self._sessions.values() if s.room_id == room_id]

    def deliver(self, outcome: Outcome) -> int:
        """
        把 Outcome 放進各收件者的送出佇列

        注意：
            - 同步放入（put_nowait），所以每個收件者收到的順序就是事件處理的順序
            - 收件者已經斷線就跳過

        返回：
            實際放入佇列的訊息數
        """
        queued = 0
        for delivery in outcome.deliveries:
            payload = delivery.message.to_wire()
            for participant_id in delivery.recipients:
                session = self._sessions.get(participant_id)
                if session is None:
                    continue
                session.outbox.put_nowait(payload)
                queued += 1
        return queued

    def __len__(self) -> int:
        return len(self._sessions)
