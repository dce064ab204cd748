"""
房間狀態機：套用每一個 inbound 事件

每個事件都經過：
1. 權限檢查（Host 專屬事件、鎖定狀態、Topic 是否存在）
2. 修改房間（包在 @room_transaction 內，失敗會整個還原）
3. 產生要送出的通知（Outcome）

這裡不碰連線，也不碰 RoomStore：
- 找房間、建立/移除房間、鎖定由 RoomManager 負責
- 把 Outcome 送到各個連線由 api 層負責
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from config import Settings
from models import Bid, Participant, Room, Topic
from schemas import (
    BidEvent,
    ComputeWinnersEvent,
    InboundEvent,
    JoinedMessage,
    LockBidsEvent,
    OutboundModel,
    RoomSnapshot,
    RoomUpdateMessage,
    SetConfigEvent,
    SetTopicsEvent,
    UnlockBidsEvent,
    WinnersMessage,
)
from core.clock import MonotonicClock
from core.exceptions import BiddingLocked, NotRoomHost, RoomLocked, TopicNotFound
from core.transaction import room_transaction
from services import allocation_service
from services.allocation_service import AllocationResult
from services.budget_service import clamp_bids_to_budget, recompute_spent
from services.naming_service import generate_topic_id, normalize_topic_name
from services.snapshot_service import build_snapshot, build_winners_payload

logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    recipients: Tuple[str, ...]
    message: OutboundModel


@dataclass
class Outcome:
    """一個事件處理完之後要送出的通知（依順序）"""
    deliveries: List[Delivery] = field(default_factory=list)

    def send(self, recipients: Iterable[str], message: OutboundModel) -> "Outcome":
        self.deliveries.append(Delivery(tuple(recipients), message))
        return self

    def extend(self, other: "Outcome") -> "Outcome":
        self.deliveries.extend(other.deliveries)
        return self

    @classmethod
    def private(cls, participant_id: str, message: OutboundModel) -> "Outcome":
        return cls().send([participant_id], message)

    def __bool__(self) -> bool:
        return bool(self.deliveries)


def _clamp_int(value: float, low: int, high: Optional[int] = None) -> int:
    result = max(low, math.floor(value))
    if high is not None:
        result = min(high, result)
    return result


class RoomStateMachine:
    """單一房間的事件處理規則（本身不保存任何房間，可以給所有房間共用）"""

    def __init__(self, settings: Settings, clock: Optional[MonotonicClock] = None):
        self.settings = settings
        self.clock = clock or MonotonicClock()
        self._handlers = {
            SetConfigEvent: self.set_config,
            SetTopicsEvent: self.set_topics,
            LockBidsEvent: self.lock_bids,
            UnlockBidsEvent: self.unlock_bids,
            BidEvent: self.bid,
            ComputeWinnersEvent: self.compute_winners,
        }

    # ============ 快照與廣播 ============

    def snapshot(self, room: Room, viewer_id: Optional[str] = None) -> RoomSnapshot:
        return build_snapshot(room, viewer_id, self.settings.redact_hidden_bids)

    def room_update(self, room: Room) -> Outcome:
        """
        廣播 room_update 給房間內所有人

        開啟 server 端遮蔽時，每個人收到的快照不同，所以逐一產生
        """
        outcome = Outcome()
        if self.settings.redact_hidden_bids:
            for participant_id in room.participants:
                outcome.send([participant_id], RoomUpdateMessage(room=self.snapshot(room, participant_id)))
        else:
            outcome.send(list(room.participants), RoomUpdateMessage(room=self.snapshot(room)))
        return outcome

    # ============ 事件分派 ============

    def apply(self, room: Room, participant_id: str, event: InboundEvent) -> Outcome:
        """
        套用 join 以外的事件

        前置條件（由 RoomManager 保證）：
            participant_id 目前在 room 裡

        異常：
            NotRoomHost / BiddingLocked / TopicNotFound（呼叫者安靜忽略）
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.debug(f"No handler for event {event!r}")
            return Outcome()
        return handler(room, participant_id, event)

    def _require_host(self, room: Room, participant_id: str) -> None:
        if not room.is_host(participant_id):
            raise NotRoomHost(participant_id, room.id)

    # ============ 加入 / 離開 ============

    @room_transaction
    def join(self, room: Room, participant_id: str, name: str) -> Outcome:
        """
        參與者加入房間

        流程：
        1. 房間鎖定且不允許鎖定後加入 -> RoomLocked
        2. 房間沒有 Host -> 加入者成為 Host
        3. 新增（或覆蓋）參與者，既有的出價保留
        4. 私訊 joined，再廣播 room_update

        參數：
            room: 房間（已經由 RoomStore 取得或建立）
            participant_id: 參與者 ID
            name: 已正規化的顯示名稱
        """
        if room.locked and not room.config.allow_join_after_lock:
            raise RoomLocked(room.id)

        if room.host_id is None:
            room.host_id = participant_id

        room.participants[participant_id] = Participant(id=participant_id, name=name)
        room.bids.setdefault(participant_id, {})
        recompute_spent(room, participant_id)

        logger.info(f"Participant {participant_id} ({name}) joined room {room.id}")

        outcome = Outcome.private(
            participant_id,
            JoinedMessage(participant_id=participant_id, room=self.snapshot(room, participant_id)),
        )
        return outcome.extend(self.room_update(room))

    @room_transaction
    def leave(self, room: Room, participant_id: str) -> Outcome:
        """
        參與者離開（斷線）

        流程：
        1. 移除參與者與他的所有出價
        2. 如果是 Host，交給剩下的第一個參與者（依加入順序），沒人就設為 None
        3. 房間還有人 -> 廣播 room_update；房間空了 -> 不送任何通知
           （移除空房間由 RoomManager 負責）
        """
        if participant_id not in room.participants:
            return Outcome()

        del room.participants[participant_id]
        room.bids.pop(participant_id, None)
        logger.info(f"Participant {participant_id} left room {room.id}")

        if room.host_id == participant_id:
            room.host_id = next(iter(room.participants), None)
            if room.host_id is not None:
                logger.info(f"Host of room {room.id} handed over to {room.host_id}")

        if room.is_empty():
            return Outcome()
        return self.room_update(room)

    # ============ Host 專屬事件 ============

    @room_transaction
    def set_config(self, room: Room, participant_id: str, event: SetConfigEvent) -> Outcome:
        """
        修改房間設定（Host 專屬）

        規則：
        - budget 取整數並限制在 [1, max_budget]，沒給就沿用
        - revealBids / allowJoinAfterLock 只有真的是 bool 才更新
        - 預算可能變小，所以每個參與者都要重新 clamp
        """
        self._require_host(room, participant_id)

        config = room.config
        budget = event.budget if event.budget is not None else config.budget
        config.budget = _clamp_int(budget, 1, self.settings.max_budget)

        if isinstance(event.reveal_bids, bool):
            config.reveal_bids = event.reveal_bids
        if isinstance(event.allow_join_after_lock, bool):
            config.allow_join_after_lock = event.allow_join_after_lock

        now = self.clock.now()
        for pid in room.participants:
            clamp_bids_to_budget(room, pid, now)

        logger.info(
            f"Room {room.id} config updated: budget={config.budget}, "
            f"reveal_bids={config.reveal_bids}, allow_join_after_lock={config.allow_join_after_lock}"
        )
        return self.room_update(room)

    @room_transaction
    def set_topics(self, room: Room, participant_id: str, event: SetTopicsEvent) -> Outcome:
        """
        整批取代 Topic 列表（Host 專屬）

        規則：
        - 最多 max_topics 個，多的直接截掉
        - 有給 id 就沿用，沒給（或同一批裡重複）就產生新的
        - name 去空白、截斷、預設 "Topic"
        - capacity 取整數並限制在 [1, max_topic_capacity]，預設 1
        - 刪掉指向已不存在 Topic 的出價，再對每個人重算 spent 並 clamp
        """
        self._require_host(room, participant_id)

        topics = []
        seen = set()
        for raw in event.topics[:self.settings.max_topics]:
            topic_id = raw.id
            if not topic_id or topic_id in seen:
                topic_id = generate_topic_id()
                while topic_id in seen:
                    topic_id = generate_topic_id()
            seen.add(topic_id)

            capacity = raw.capacity if raw.capacity is not None else 1
            topics.append(Topic(
                id=topic_id,
                name=normalize_topic_name(raw.name, self.settings.max_topic_name_length),
                capacity=_clamp_int(capacity, 1, self.settings.max_topic_capacity),
            ))
        room.topics = topics

        now = self.clock.now()
        for pid, per_topic in room.bids.items():
            for topic_id in [tid for tid in per_topic if tid not in seen]:
                del per_topic[topic_id]
            recompute_spent(room, pid)
            clamp_bids_to_budget(room, pid, now)

        logger.info(f"Room {room.id} topics replaced ({len(topics)} topics)")
        return self.room_update(room)

    @room_transaction
    def lock_bids(self, room: Room, participant_id: str, event: LockBidsEvent) -> Outcome:
        self._require_host(room, participant_id)
        room.locked = True
        logger.info(f"Room {room.id} locked")
        return self.room_update(room)

    @room_transaction
    def unlock_bids(self, room: Room, participant_id: str, event: UnlockBidsEvent) -> Outcome:
        self._require_host(room, participant_id)
        room.locked = False
        logger.info(f"Room {room.id} unlocked")
        return self.room_update(room)

    def compute_winners(self, room: Room, participant_id: str, event: ComputeWinnersEvent) -> Outcome:
        """
        計算並廣播得標結果（Host 專屬）

        不修改房間，可以重複呼叫，結果相同
        """
        self._require_host(room, participant_id)

        result = self.allocate(room)
        logger.info(
            f"Computed winners for room {room.id}: "
            f"{len(result.assignment_by_player)} assigned in {result.passes} pass(es)"
        )
        return Outcome().send(
            list(room.participants),
            WinnersMessage(winners=build_winners_payload(result)),
        )

    def allocate(self, room: Room) -> AllocationResult:
        return allocation_service.compute_winners(
            room.topics, room.bids, self.settings.allocation_max_passes
        )

    # ============ 出價 ============

    @room_transaction
    def bid(self, room: Room, participant_id: str, event: BidEvent) -> Outcome:
        """
        出價（任何參與者都可以，但只能替自己出價）

        規則：
        - 房間鎖定 -> BiddingLocked
        - Topic 不存在 -> TopicNotFound
        - 金額取整數、最小 0，覆蓋同一個 Topic 的舊出價
        - 寫入後 clamp 這個人的出價
        """
        if room.locked:
            raise BiddingLocked(room.id)
        if not room.has_topic(event.topic_id):
            raise TopicNotFound(event.topic_id)

        now = self.clock.now()
        amount = _clamp_int(event.amount, 0)
        room.bids.setdefault(participant_id, {})[event.topic_id] = Bid(amount=amount, timestamp=now)
        clamp_bids_to_budget(room, participant_id, now)

        return self.room_update(room)
