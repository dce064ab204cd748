"""
預算服務：計算已花費點數、把超出預算的出價壓回預算內

純計算邏輯，只改動單一參與者的出價，不負責廣播
"""
import logging

from models import Room

logger = logging.getLogger(__name__)


def recompute_spent(room: Room, participant_id: str) -> int:
    """
    重新計算參與者的 spent（所有出價金額的總和）

    參數：
        room: 房間
        participant_id: 參與者 ID

    返回：
        最新的 spent

    注意：
        參與者已經離開時只回傳總和，不會寫回任何東西
    """
    per_topic = room.bids.get(participant_id)
    spent = sum(bid.amount for bid in per_topic.values()) if per_topic else 0

    participant = room.participants.get(participant_id)
    if participant:
        participant.spent = spent
    return spent


def clamp_bids_to_budget(room: Room, participant_id: str, now: int) -> bool:
    """
    把參與者的出價總額壓回預算內

    策略（先砍最不重要的出價，而不是拒絕這次操作）：
    1. 總額 <= 預算：只更新 spent
    2. 總額 > 預算：overage = 總額 - 預算
    3. 依金額由小到大排序，同金額時「最新的」排前面
    4. 依序扣掉 min(金額, 剩餘 overage)，金額已經是 0 的跳過
    5. 這位參與者的所有出價 timestamp 改成 now
    6. 更新 spent

    範例：
        預算 100，出價 {X: 60, Y: 50}（總額 110）
        -> Y 先被扣 10 -> {X: 60, Y: 40}

    參數：
        room: 房間
        participant_id: 參與者 ID
        now: 執行時間（毫秒）

    返回：
        True 如果有出價被削減，False 否則

    保證：
        - 冪等：對已經在預算內的出價再執行一次不會有任何改變
        - 不會產生負數出價
    """
    budget = room.config.budget
    per_topic = room.bids.get(participant_id)
    if not per_topic:
        recompute_spent(room, participant_id)
        return False

    total = sum(bid.amount for bid in per_topic.values())
    if total <= budget:
        recompute_spent(room, participant_id)
        return False

    trim_order = sorted(
        per_topic.values(),
        key=lambda bid: (bid.amount, -bid.timestamp)
    )

    overage = total - budget
    for bid in trim_order:
        if overage <= 0:
            break
        if bid.amount <= 0:
            continue

        take = min(bid.amount, overage)
        bid.amount -= take
        overage -= take

    for bid in per_topic.values():
        bid.timestamp = now

    spent = recompute_spent(room, participant_id)
    logger.info(
        f"Clamped bids of {participant_id} in room {room.id}: "
        f"{total} -> {spent} (budget {budget})"
    )
    return True
