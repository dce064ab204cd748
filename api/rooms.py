"""
Room API Endpoints（唯讀）

職責：
1. 列出進行中的房間
2. 以旁觀者身分查詢房間快照

所有修改都走 WebSocket，這裡不提供任何寫入操作
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from schemas import RoomListResponse, RoomSnapshot
from core.exceptions import RoomNotFound
from core.room_manager import RoomManager
from api.dependencies import get_room_manager

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)


@router.get("", response_model=RoomListResponse)
def list_rooms(manager: RoomManager = Depends(get_room_manager)):
    """列出所有進行中的房間代碼"""
    return RoomListResponse(rooms=manager.store.codes())


@router.get("/{code}", response_model=RoomSnapshot)
def get_room(code: str, manager: RoomManager = Depends(get_room_manager)):
    """
    取得房間快照（旁觀者視角）

    參數：
        code: 房間代碼（不分大小寫）

    返回：
        與 room_update 相同格式的快照；開啟 server 端遮蔽且 revealBids = False 時不含逐項出價
    """
    try:
        return manager.snapshot(code)
    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
