"""
領域模型：Room、Topic、Participant、Bid

全部都是記憶體內的 dataclass，不含任何連線物件（WebSocket 由 api.sessions 管理）。
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class RoomConfig:
    """房間設定（只有 Host 可以修改）"""
    budget: int = 100
    reveal_bids: bool = True
    allow_join_after_lock: bool = True


@dataclass
class Topic:
    id: str
    name: str
    capacity: int = 1


@dataclass
class Participant:
    """
    房間內的參與者

    注意：
        spent 是衍生值（所有出價金額的總和），只能透過
        services.budget_service.recompute_spent() 更新
    """
    id: str
    name: str
    spent: int = 0


@dataclass
class Bid:
    amount: int
    timestamp: int


@dataclass
class Room:
    """
    一場拍賣

    bids 的結構：participant_id -> (topic_id -> Bid)
    participants 的插入順序就是加入順序（Host 交接時會用到）
    """
    id: str
    config: RoomConfig = field(default_factory=RoomConfig)
    host_id: Optional[str] = None
    locked: bool = False
    topics: List[Topic] = field(default_factory=list)
    participants: Dict[str, Participant] = field(default_factory=dict)
    bids: Dict[str, Dict[str, Bid]] = field(default_factory=dict)

    def is_host(self, participant_id: str) -> bool:
        return self.host_id is not None and self.host_id == participant_id

    def topic_ids(self) -> List[str]:
        return [topic.id for topic in self.topics]

    def has_topic(self, topic_id: str) -> bool:
        return any(topic.id == topic_id for topic in self.topics)

    def is_empty(self) -> bool:
        return not self.participants
