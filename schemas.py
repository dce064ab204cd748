"""
WebSocket 協定的 Pydantic schemas

Inbound：客戶端送來的事件，以 type 欄位區分（discriminated union）
Outbound：伺服器送出的通知，欄位一律用 camelCase（跟前端約定的格式）
"""
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


# ============ Inbound events ============

class InboundEvent(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


class JoinEvent(InboundEvent):
    type: Literal["join"]
    room_id: Optional[str] = Field(None, alias="roomId")
    name: Optional[str] = None


class SetConfigEvent(InboundEvent):
    type: Literal["set_config"]
    budget: Optional[FiniteFloat] = None
    # 只有真的 bool 才會被採用，所以這裡不讓 pydantic 先轉型
    reveal_bids: Any = Field(None, alias="revealBids")
    allow_join_after_lock: Any = Field(None, alias="allowJoinAfterLock")


class TopicInput(InboundEvent):
    id: Optional[str] = None
    name: Optional[str] = None
    capacity: Optional[FiniteFloat] = None


class SetTopicsEvent(InboundEvent):
    type: Literal["set_topics"]
    topics: List[TopicInput] = []


class LockBidsEvent(InboundEvent):
    type: Literal["lock_bids"]


class UnlockBidsEvent(InboundEvent):
    type: Literal["unlock_bids"]


class BidEvent(InboundEvent):
    type: Literal["bid"]
    topic_id: str = Field("", alias="topicId")
    amount: FiniteFloat = 0


class ComputeWinnersEvent(InboundEvent):
    type: Literal["compute_winners"]


Event = Annotated[
    Union[
        JoinEvent,
        SetConfigEvent,
        SetTopicsEvent,
        LockBidsEvent,
        UnlockBidsEvent,
        BidEvent,
        ComputeWinnersEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(Event)


def parse_event(raw: Union[str, bytes]) -> Optional[InboundEvent]:
    """
    解析一個 WebSocket text frame

    無法解析的 JSON、未知的 type、欄位型別錯誤都視為 malformed input，
    回傳 None（呼叫者直接丟棄，不通知客戶端）
    """
    try:
        return _event_adapter.validate_json(raw)
    except ValidationError as e:
        logger.debug(f"Dropping malformed event: {e.error_count()} validation error(s)")
        return None


# ============ Outbound notifications ============

class OutboundModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class ConfigView(OutboundModel):
    budget: int
    reveal_bids: bool
    allow_join_after_lock: bool


class TopicView(OutboundModel):
    id: str
    name: str
    capacity: int


class ParticipantView(OutboundModel):
    id: str
    name: str
    spent: int


class BidView(OutboundModel):
    amount: int
    ts: int


class RoomSnapshot(OutboundModel):
    id: str
    host_id: Optional[str]
    config: ConfigView
    locked: bool
    topics: List[TopicView]
    participants: List[ParticipantView]
    bids: Dict[str, Dict[str, BidView]]
    reveal_bids: bool


class ErrorMessage(OutboundModel):
    type: Literal["error"] = "error"
    message: str


class JoinedMessage(OutboundModel):
    type: Literal["joined"] = "joined"
    participant_id: str
    room: RoomSnapshot


class RoomUpdateMessage(OutboundModel):
    type: Literal["room_update"] = "room_update"
    room: RoomSnapshot


class WinnersPayload(OutboundModel):
    winners_by_topic: Dict[str, List[str]]
    assignment_by_player: Dict[str, str]


class WinnersMessage(OutboundModel):
    type: Literal["winners"] = "winners"
    winners: WinnersPayload


class RoomListResponse(BaseModel):
    rooms: List[str]
