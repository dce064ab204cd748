"""
命名服務：產生 ID、正規化房間代碼與顯示名稱

純計算邏輯，不涉及狀態轉換
"""
import random
import string
from typing import Any, Optional

# URL-safe 字元集
ID_ALPHABET = string.ascii_letters + string.digits + "_-"

PARTICIPANT_ID_LENGTH = 8
TOPIC_ID_LENGTH = 6

DEFAULT_PLAYER_NAME = "Player"
DEFAULT_TOPIC_NAME = "Topic"


def _random_id(length: int) -> str:
    return ''.join(random.choices(ID_ALPHABET, k=length))


def generate_participant_id() -> str:
    """
    為每一條連線產生參與者 ID

    範例：V1StGXR8, Uakgb_J5

    注意：
    - 不檢查唯一性（64^8 種可能，碰撞機率極低）
    - ID 只在這條連線的生命週期內有效
    """
    return _random_id(PARTICIPANT_ID_LENGTH)


def generate_topic_id() -> str:
    """為新的 Topic 產生 6 碼 ID"""
    return _random_id(TOPIC_ID_LENGTH)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def normalize_room_code(raw: Any) -> str:
    """
    正規化房間代碼：去除前後空白並轉大寫

    範例：
        normalize_room_code("  abc1 ") -> "ABC1"
        normalize_room_code(None) -> ""
    """
    return _as_text(raw).strip().upper()


def normalize_name(raw: Optional[Any], max_length: int, default: str) -> str:
    """
    正規化顯示名稱

    規則：
    - 去除前後空白
    - 截斷到 max_length
    - 結果為空字串時使用 default

    參數：
        raw: 客戶端送來的名稱（可能是 None）
        max_length: 最大長度（參與者 32、Topic 80）
        default: 預設名稱

    返回：
        正規化後的名稱
    """
    name = _as_text(raw).strip()[:max_length]
    return name or default


def normalize_player_name(raw: Optional[Any], max_length: int = 32) -> str:
    return normalize_name(raw, max_length, DEFAULT_PLAYER_NAME)


def normalize_topic_name(raw: Optional[Any], max_length: int = 80) -> str:
    return normalize_name(raw, max_length, DEFAULT_TOPIC_NAME)
