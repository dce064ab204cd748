from dataclasses import dataclass
from typing import Optional

import pytest

from config import Settings
from core.room_manager import RoomManager
from core.state_machine import RoomStateMachine


class FakeClock:
    """每次呼叫 now() 前進 step 毫秒"""

    def __init__(self, start: int = 1000, step: int = 1):
        self.current = start
        self.step = step

    def now(self) -> int:
        self.current += self.step
        return self.current


@dataclass
class FakeSession:
    participant_id: str
    room_id: Optional[str] = None


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(settings, clock):
    return RoomManager(settings, machine=RoomStateMachine(settings, clock=clock))


@pytest.fixture
def session_factory():
    def make(participant_id):
        return FakeSession(participant_id=participant_id)
    return make


def messages_for(outcome, participant_id):
    """某個參與者在這個 Outcome 裡收到的訊息（wire 格式）"""
    return [
        delivery.message.to_wire()
        for delivery in outcome.deliveries
        if participant_id in delivery.recipients
    ]
