"""
房間層級的 transaction

記憶體內沒有資料庫可以 rollback，所以在處理事件前先複製房間的可變狀態，
處理失敗就還原，確保一個事件的修改「全部生效或全部不生效」
"""
import copy
import logging
from functools import wraps

from models import Room
from core.exceptions import AuctionException

logger = logging.getLogger(__name__)

_MUTABLE_FIELDS = ("host_id", "config", "locked", "topics", "participants", "bids")


def _find_room(args, kwargs):
    if "room" in kwargs and isinstance(kwargs["room"], Room):
        return kwargs["room"]
    for arg in args:
        if isinstance(arg, Room):
            return arg
    return None


def room_transaction(func):
    """
    Transaction decorator：確保房間修改的原子性

    使用方式：
        @room_transaction
        def on_bid(self, room: Room, participant_id: str, event: BidEvent):
            # 直接修改 room，不需要自己處理失敗
            ...

    如果函式內發生異常：
        - room 還原成呼叫前的狀態
        - AuctionException 記 DEBUG（預期中的軟失敗），其他異常記 ERROR
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 參數中必須有一個 Room（位置參數或 room=...）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        room = _find_room(args, kwargs)
        if room is None:
            raise ValueError(
                f"@room_transaction requires a Room argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        backup = {name: copy.deepcopy(getattr(room, name)) for name in _MUTABLE_FIELDS}
        try:
            return func(*args, **kwargs)
        except AuctionException as e:
            _restore(room, backup)
            logger.debug(f"{func.__name__} rejected in room {room.id}: {e}")
            raise
        except Exception as e:
            _restore(room, backup)
            logger.error(f"Transaction failed in {func.__name__} (room {room.id}): {e}", exc_info=True)
            raise

    return wrapper


def _restore(room: Room, backup: dict) -> None:
    for name, value in backup.items():
        setattr(room, name, value)
