from fastapi import Request

from core.room_manager import RoomManager
from api.sessions import SessionRegistry


def get_room_manager(request: Request) -> RoomManager:
    """FastAPI dependency：lifespan 建立的 RoomManager"""
    return request.app.state.room_manager


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions
