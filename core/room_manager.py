"""
Room Manager：把每條連線的事件送到正確的房間

職責：
1. join：正規化房間代碼、取得或建立房間、換房時先離開舊房間
2. 其他事件：找出連線目前所在的房間，在房間鎖內交給 RoomStateMachine
3. 斷線：離開房間，房間空了就從 RoomStore 移除
4. 把 AuctionException 轉成通知（或安靜忽略）

Linus 原則：
- 單一職責：只負責路由與房間生命週期，規則都在 RoomStateMachine
- 消除特殊情況：所有事件都回傳 Outcome，沒有通知就是空的 Outcome
"""
import logging
from typing import Optional, Protocol

from config import Settings
from schemas import ErrorMessage, InboundEvent, JoinEvent, RoomSnapshot
from core.exceptions import (
    AuctionException,
    NotJoined,
    ParticipantNotInRoom,
    RoomCodeRequired,
    RoomNotFound,
)
from core.locks import RoomLocks
from core.room_store import RoomStore
from core.state_machine import Outcome, RoomStateMachine
from services.naming_service import normalize_player_name, normalize_room_code

logger = logging.getLogger(__name__)


class SessionLike(Protocol):
    participant_id: str
    room_id: Optional[str]


class RoomManager:
    """房間事件路由器"""

    def __init__(
        self,
        settings: Settings,
        store: Optional[RoomStore] = None,
        locks: Optional[RoomLocks] = None,
        machine: Optional[RoomStateMachine] = None,
    ):
        self.settings = settings
        self.store = store or RoomStore(default_budget=settings.default_budget)
        self.locks = locks or RoomLocks()
        self.machine = machine or RoomStateMachine(settings)

    def handle(self, session: SessionLike, event: InboundEvent) -> Outcome:
        """
        處理一個已解析的事件

        參數：
            session: 發出事件的連線（participant_id + 目前所在房間）
            event: 已通過 schema 驗證的事件

        返回：
            要送出的通知

        注意：
            - 會通知的異常（RoomCodeRequired、RoomLocked）轉成私訊 error
            - 其他 AuctionException 一律安靜忽略，發送者無法分辨
              「沒有權限」和「格式錯誤」
        """
        try:
            if isinstance(event, JoinEvent):
                return self.join(session, event)
            return self._apply(session, event)
        except AuctionException as e:
            if e.notify:
                logger.info(f"Rejected {event.type} from {session.participant_id}: {e}")
                return Outcome.private(session.participant_id, ErrorMessage(message=str(e)))
            logger.debug(f"Ignored {event.type} from {session.participant_id}: {e}")
            return Outcome()

    def join(self, session: SessionLike, event: JoinEvent) -> Outcome:
        """
        加入房間

        流程：
        1. 正規化房間代碼（空的 -> RoomCodeRequired）
        2. 在新房間的鎖內取得或建立房間並加入（可能 RoomLocked）
        3. 加入成功後，如果原本在別的房間，離開舊房間
        4. 更新 session.room_id

        注意：
            加入失敗時 session 維持原狀（仍在舊房間）
        """
        room_id = normalize_room_code(event.room_id)
        if not room_id:
            raise RoomCodeRequired()
        name = normalize_player_name(event.name, self.settings.max_player_name_length)

        with self.locks.hold(room_id):
            room = self.store.get_or_create(room_id)
            outcome = self.machine.join(room, session.participant_id, name)

        previous_room_id = session.room_id
        session.room_id = room_id
        if previous_room_id is not None and previous_room_id != room_id:
            outcome.extend(self._leave_room(previous_room_id, session.participant_id))
        return outcome

    def disconnect(self, session: SessionLike) -> Outcome:
        """
        連線關閉

        流程：
        1. 離開目前所在的房間（Host 交接由狀態機處理）
        2. 房間空了就移除，不送任何通知
        """
        room_id = session.room_id
        if room_id is None:
            return Outcome()
        session.room_id = None
        return self._leave_room(room_id, session.participant_id)

    def snapshot(self, room_code: str) -> RoomSnapshot:
        """
        旁觀者快照（HTTP 查詢用）

        異常：
            RoomNotFound: 房間不存在
        """
        room_id = normalize_room_code(room_code)
        with self.locks.hold(room_id):
            room = self.store.get(room_id)
            if room is None:
                raise RoomNotFound(room_id)
            return self.machine.snapshot(room)

    def _apply(self, session: SessionLike, event: InboundEvent) -> Outcome:
        if session.room_id is None:
            raise NotJoined(session.participant_id)

        with self.locks.hold(session.room_id):
            room = self.store.get(session.room_id)
            if room is None or session.participant_id not in room.participants:
                raise ParticipantNotInRoom(session.participant_id, session.room_id)
            return self.machine.apply(room, session.participant_id, event)

    def _leave_room(self, room_id: str, participant_id: str) -> Outcome:
        with self.locks.hold(room_id):
            room = self.store.get(room_id)
            if room is None:
                return Outcome()

            outcome = self.machine.leave(room, participant_id)
            if room.is_empty():
                self.store.remove(room_id)
                self.locks.discard(room_id)
            return outcome
