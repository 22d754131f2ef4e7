"""Runtime settings for the lookup bot, resolved from the environment."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from core.env import env_bool, env_float, env_int, env_str
from core.env_utils import load_dotenv_if_available

DEFAULT_ADMIN_CHAT_ID = "7490634345"
DEFAULT_LOOKUP_API_BASE_URL = "https://flipcartstore.serv00.net/INFO.php"
DEFAULT_LOOKUP_API_KEY = "chxInfo"
DEFAULT_TELEGRAM_API_BASE_URL = "https://api.telegram.org"


@dataclass(frozen=True)
class BotSettings:
    bot_token: Optional[str]
    webhook_url: Optional[str]
    admin_chat_id: str
    admin_username: str
    lookup_api_base_url: str
    lookup_api_key: str
    lookup_timeout_seconds: float
    rate_limit_ms: int
    user_store_path: Path
    degrade_on_store_error: bool
    telegram_api_base_url: str
    telegram_poll_timeout: int

    @property
    def admin_contact_url(self) -> str:
        return f"tg://user?id={self.admin_chat_id}"

    @property
    def webhook_path(self) -> Optional[str]:
        if not self.bot_token:
            return None
        return f"/webhook/{self.bot_token}"


def load_settings(*, load_env_file: bool = True) -> BotSettings:
    """Build ``BotSettings`` from the current process environment."""

    if load_env_file:
        load_dotenv_if_available()

    return BotSettings(
        bot_token=env_str("BOT_TOKEN"),
        webhook_url=env_str("WEBHOOK_URL"),
        admin_chat_id=env_str("ADMIN_CHAT_ID", DEFAULT_ADMIN_CHAT_ID) or DEFAULT_ADMIN_CHAT_ID,
        admin_username=env_str("ADMIN_USERNAME", "admin_username") or "admin_username",
        lookup_api_base_url=env_str("LOOKUP_API_BASE_URL", DEFAULT_LOOKUP_API_BASE_URL)
        or DEFAULT_LOOKUP_API_BASE_URL,
        lookup_api_key=env_str("LOOKUP_API_KEY", DEFAULT_LOOKUP_API_KEY) or DEFAULT_LOOKUP_API_KEY,
        lookup_timeout_seconds=env_float("LOOKUP_TIMEOUT_SECONDS", 15.0, minimum=1.0),
        rate_limit_ms=env_int("LOOKUP_RATE_LIMIT_MS", 2000, minimum=0),
        user_store_path=Path(env_str("USER_STORE_PATH", "users.json") or "users.json").expanduser(),
        degrade_on_store_error=env_bool("USER_STORE_DEGRADE_ON_ERROR", False),
        telegram_api_base_url=env_str("TELEGRAM_API_BASE_URL", DEFAULT_TELEGRAM_API_BASE_URL)
        or DEFAULT_TELEGRAM_API_BASE_URL,
        telegram_poll_timeout=env_int("TELEGRAM_POLL_TIMEOUT", 10, minimum=0),
    )


__all__ = ["BotSettings", "load_settings"]
