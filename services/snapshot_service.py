"""
房間快照服務：把 Room 轉成前端需要的公開格式

只輸出前端需要的欄位（參與者只有 id / name / spent），不含任何連線物件
"""
from typing import Optional

from models import Room
from schemas import (
    BidView,
    ConfigView,
    ParticipantView,
    RoomSnapshot,
    TopicView,
    WinnersPayload,
)
from services.allocation_service import AllocationResult


def can_see_bids_of(room: Room, viewer_id: Optional[str], owner_id: str, redact_hidden_bids: bool) -> bool:
    """
    判斷 viewer 能不能看到 owner 的逐項出價

    規則：
    - 沒開啟 server 端遮蔽（預設）：所有人都看得到，revealBids 只是給前端的顯示提示
    - 開啟遮蔽且 revealBids = True：所有人都看得到
    - 開啟遮蔽且 revealBids = False：只看得到自己的；Host 看得到全部
    """
    if not redact_hidden_bids or room.config.reveal_bids:
        return True
    if viewer_id is None:
        return False
    return viewer_id == owner_id or room.is_host(viewer_id)


def build_snapshot(
    room: Room,
    viewer_id: Optional[str] = None,
    redact_hidden_bids: bool = False,
) -> RoomSnapshot:
    """
    建立房間的公開快照

    參數：
        room: 房間
        viewer_id: 收件者的 participant_id（None 代表旁觀者，例如 HTTP 查詢）
        redact_hidden_bids: 是否在 server 端遮蔽其他人的出價

    返回：
        RoomSnapshot
    """
    bids = {}
    for owner_id, per_topic in room.bids.items():
        if not can_see_bids_of(room, viewer_id, owner_id, redact_hidden_bids):
            continue
        bids[owner_id] = {
            topic_id: BidView(amount=bid.amount, ts=bid.timestamp)
            for topic_id, bid in per_topic.items()
        }

    return RoomSnapshot(
        id=room.id,
        host_id=room.host_id,
        config=ConfigView(
            budget=room.config.budget,
            reveal_bids=room.config.reveal_bids,
            allow_join_after_lock=room.config.allow_join_after_lock,
        ),
        locked=room.locked,
        topics=[
            TopicView(id=topic.id, name=topic.name, capacity=topic.capacity)
            for topic in room.topics
        ],
        participants=[
            ParticipantView(id=p.id, name=p.name, spent=p.spent)
            for p in room.participants.values()
        ],
        bids=bids,
        reveal_bids=room.config.reveal_bids,
    )


def build_winners_payload(result: AllocationResult) -> WinnersPayload:
    return WinnersPayload(
        winners_by_topic=result.winners_by_topic,
        assignment_by_player=result.assignment_by_player,
    )
