"""
分配服務：根據出價計算每個 Topic 的得標者

純計算邏輯，不改動房間狀態，同樣的輸入永遠得到同樣的結果

規則：
1. 只有金額 > 0 的出價才算候選人
2. 每個 Topic 內的排名：金額高者優先 -> timestamp 早者優先 -> participant_id 字典序小者優先
3. 暫定得標：每個 Topic 取排名前 capacity 名（此時一個人可以同時贏好幾個 Topic）
4. 衝突處理：同時贏多個 Topic 的人只保留「出價最好」的那一個
   （金額高 -> timestamp 早 -> topic_id 字典序小），其他 Topic 讓出名額
5. 補位：有空位的 Topic 從上次停下的位置繼續往下找，
   跳過已經在別處得標或已經在這個 Topic 的人（被跳過的人不會再被考慮）
6. 重複 4-5 直到某一輪沒有任何改變，或達到 max_passes 上限
"""
import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

from models import Bid, Topic

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 1000


@dataclass(frozen=True)
class Candidate:
    participant_id: str
    amount: int
    timestamp: int


@dataclass
class AllocationResult:
    """
    分配結果

    winners_by_topic: topic_id -> 得標者列表（每個 Topic 都會出現，可能是空列表）
    assignment_by_player: participant_id -> topic_id（只包含有得標的人）
    passes: 實際跑了幾輪衝突處理 + 補位
    converged: False 表示是被 max_passes 擋下來的
    """
    winners_by_topic: Dict[str, List[str]]
    assignment_by_player: Dict[str, str]
    passes: int = 0
    converged: bool = True


def rank_candidates(topic_id: str, bids: Mapping[str, Mapping[str, Bid]]) -> List[Candidate]:
    """
    建立某個 Topic 的候選人排名

    參數：
        topic_id: Topic ID
        bids: participant_id -> (topic_id -> Bid)

    返回：
        依排名排序好的候選人列表（金額 <= 0 的出價不列入）
    """
    candidates = []
    for participant_id, per_topic in bids.items():
        bid = per_topic.get(topic_id)
        if bid is None:
            continue
        amount = max(0, math.floor(bid.amount))
        if amount <= 0:
            continue
        candidates.append(Candidate(participant_id, amount, bid.timestamp))

    candidates.sort(key=lambda c: (-c.amount, c.timestamp, c.participant_id))
    return candidates


def _resolve_multi_wins(topics: Sequence[Topic], seats: Dict[str, Dict[str, Candidate]]) -> bool:
    """每個同時贏多個 Topic 的人只留下最好的一個，回傳是否有人被移除"""
    wins_by_player = defaultdict(list)
    for topic in topics:
        for participant_id, candidate in seats[topic.id].items():
            wins_by_player[participant_id].append((topic.id, candidate))

    keep_by_player = {}
    for participant_id, wins in wins_by_player.items():
        if len(wins) <= 1:
            continue
        best_topic_id, _ = min(
            wins,
            key=lambda win: (-win[1].amount, win[1].timestamp, win[0])
        )
        keep_by_player[participant_id] = best_topic_id

    changed = False
    for participant_id, keep_topic_id in keep_by_player.items():
        for topic in topics:
            if topic.id == keep_topic_id:
                continue
            if participant_id in seats[topic.id]:
                del seats[topic.id][participant_id]
                changed = True
    return changed


def _refill_vacancies(
    topics: Sequence[Topic],
    ranked: Dict[str, List[Candidate]],
    seats: Dict[str, Dict[str, Candidate]],
    cursor: Dict[str, int],
) -> bool:
    """補滿有空位的 Topic，回傳是否有人補進來"""
    winning = {pid for topic_seats in seats.values() for pid in topic_seats}

    changed = False
    for topic in topics:
        topic_seats = seats[topic.id]
        if len(topic_seats) >= topic.capacity:
            continue

        candidates = ranked[topic.id]
        index = cursor[topic.id]
        while len(topic_seats) < topic.capacity and index < len(candidates):
            candidate = candidates[index]
            index += 1
            if candidate.participant_id in topic_seats:
                continue
            if candidate.participant_id in winning:
                continue

            topic_seats[candidate.participant_id] = candidate
            winning.add(candidate.participant_id)
            changed = True

        cursor[topic.id] = index
    return changed


def compute_winners(
    topics: Sequence[Topic],
    bids: Mapping[str, Mapping[str, Bid]],
    max_passes: int = DEFAULT_MAX_PASSES,
) -> AllocationResult:
    """
    計算得標結果

    參數：
        topics: Topic 列表（ID 必須唯一）
        bids: participant_id -> (topic_id -> Bid)
        max_passes: 衝突處理 + 補位的最大輪數（安全閥）

    返回：
        AllocationResult

    保證：
        - 每個人最多只出現在一個 Topic 的得標者中
        - 每個 Topic 的得標人數 <= capacity
        - 每個得標者在自己的 Topic 上出價 > 0

    終止性：
        第一輪衝突處理之後就不會再有人同時贏兩個 Topic（補位只收還沒得標的人），
        而補位會一直往下找直到額滿或候選人用完，所以第二輪一定沒有改變，
        正常輸入最多跑 2 輪。max_passes 只是防呆。
    """
    ranked = {topic.id: rank_candidates(topic.id, bids) for topic in topics}

    # dict 當作有順序的 set 使用：participant_id -> Candidate
    seats: Dict[str, Dict[str, Candidate]] = {}
    cursor: Dict[str, int] = {}
    for topic in topics:
        tentative = ranked[topic.id][:topic.capacity]
        seats[topic.id] = {c.participant_id: c for c in tentative}
        cursor[topic.id] = len(tentative)

    passes = 0
    changed = True
    while changed and passes < max_passes:
        passes += 1
        changed = _resolve_multi_wins(topics, seats)
        if _refill_vacancies(topics, ranked, seats, cursor):
            changed = True

    if changed:
        logger.warning(
            f"Allocation stopped at the {max_passes}-pass ceiling before reaching "
            f"a fixed point ({len(topics)} topics, {len(bids)} bidders)"
        )

    winners_by_topic = {topic.id: list(seats[topic.id]) for topic in topics}
    assignment_by_player = {}
    for topic in topics:
        for participant_id in seats[topic.id]:
            assignment_by_player[participant_id] = topic.id

    return AllocationResult(
        winners_by_topic=winners_by_topic,
        assignment_by_player=assignment_by_player,
        passes=passes,
        converged=not changed,
    )
