from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="AUCTION_")

    # 房間預設值與上限
    default_budget: int = 100
    max_budget: int = 10000
    max_topics: int = 50
    max_topic_capacity: int = 20
    max_topic_name_length: int = 80
    max_player_name_length: int = 32

    # 分配演算法的迭代上限（安全閥，不是 timeout）
    allocation_max_passes: int = 1000

    # revealBids = False 時是否在 server 端遮蔽其他人的出價
    redact_hidden_bids: bool = False

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = ["*"]


@lru_cache()
def get_settings():
    return Settings()
