from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List
import os
from dotenv import load_dotenv

from flow_engine import FlowConflictPolicy
from models.enums import AccessCategory

load_dotenv()

class Settings(BaseSettings):
    # Bot token
    telegram_bot_token: str = Field(default=os.getenv("TELEGRAM_BOT_TOKEN", ""))

    # Logging
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    debug: bool = False

    # Flow engine
    flow_conflict_policy: FlowConflictPolicy = FlowConflictPolicy.REPLACE
    # 0 disables expiry of idle conversations
    session_idle_timeout_seconds: float = 900.0
    session_reap_interval_seconds: float = 60.0
    exit_commands: List[str] = ["cancel", "exit"]
    allow_global_commands: bool = False
    help_commands: List[str] = ["help"]

    # Access control (lists are read from the environment as JSON, e.g. ADMIN_USER_IDS=[123])
    admin_user_ids: List[int] = []
    default_access_category: AccessCategory = AccessCategory.MEMBER

    # Telegram delivery
    reply_max_retries: int = 2
    reply_retry_backoff_seconds: float = 1.5

    # Record store
    use_fake_data: bool = True

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level.upper()

    class Config:
        env_file = ".env"

settings = Settings()
