from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from config import get_settings
from core.room_manager import RoomManager
from api import rooms, websocket
from api.dependencies import get_room_manager, get_sessions
from api.sessions import SessionRegistry

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 每次啟動都是全新的房間狀態（不做持久化）
    app.state.room_manager = RoomManager(settings)
    app.state.sessions = SessionRegistry()
    logger.info("Topic auction server ready")
    yield
    # Shutdown: 記憶體內的房間直接丟棄
    logger.info(f"Shutting down with {len(app.state.room_manager.store)} active room(s)")


app = FastAPI(
    title="Topic Auction API",
    description="Live budget-constrained topic auctions over WebSocket",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rooms.router)
app.include_router(websocket.router)


@app.get("/")
def root():
    return {"message": "Topic Auction API", "status": "ok"}


@app.get("/health")
def health(
    manager: RoomManager = Depends(get_room_manager),
    sessions: SessionRegistry = Depends(get_sessions),
):
    return {"status": "healthy", "rooms": len(manager.store), "connections": len(sessions)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
