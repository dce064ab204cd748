"""
WebSocket Endpoint

每條連線：
1. 產生 participant_id（Session）
2. 收到的 text frame 解析成事件，交給 RoomManager
3. RoomManager 回傳的 Outcome 放進各收件者的佇列，由各自的 writer task 送出
4. 連線關閉時離開房間
"""
import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from schemas import parse_event
from core.room_manager import RoomManager
from api.sessions import Session, SessionRegistry

router = APIRouter(tags=["auction"])
logger = logging.getLogger(__name__)


async def _pump(websocket: WebSocket, session: Session):
    """把 session.outbox 裡的訊息依序送出"""
    try:
        while True:
            payload = await session.outbox.get()
            await websocket.send_json(payload)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.info(f"Stopped sending to {session.participant_id}: {e}")


@router.websocket("/ws")
async def auction_socket(websocket: WebSocket):
    manager: RoomManager = websocket.app.state.room_manager
    registry: SessionRegistry = websocket.app.state.sessions

    await websocket.accept()
    session = registry.open()
    writer = asyncio.create_task(_pump(websocket, session))
    logger.info(f"Connection opened: {session.participant_id}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue

            event = parse_event(raw)
            if event is None:
                continue

            try:
                registry.deliver(manager.handle(session, event))
            except Exception as e:
                # transaction 已經還原房間，連線繼續使用
                logger.error(f"Failed to handle {event.type} from {session.participant_id}: {e}", exc_info=True)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Connection {session.participant_id} failed: {e}", exc_info=True)
    finally:
        registry.deliver(manager.disconnect(session))
        registry.close(session)
        writer.cancel()
        logger.info(f"Connection closed: {session.participant_id}")
