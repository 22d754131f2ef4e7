"""Long-polling runner for local development.

Run with ``python -m web.polling``. Any registered webhook is removed first
because Telegram refuses ``getUpdates`` while one is active.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Set

from core.env_utils import require_env_vars
from core.logging import get_logger, setup_logging
from core.settings import BotSettings, load_settings
from services.bot_commands import BotCommandRouter
from services.lookup_context import LookupContext
from services.lookup_errors import TelegramApiError
from services.telegram_client import TelegramClient

logger = get_logger(__name__)

_ERROR_BACKOFF_SECONDS = 5.0


async def poll_once(
    telegram: TelegramClient,
    bot_router: BotCommandRouter,
    *,
    offset: Optional[int],
    timeout: int,
    pending: Optional[Set[asyncio.Task]] = None,
) -> Optional[int]:
    """Fetch one batch of updates, start one dispatch task per update and return the next offset.

    Tasks start in update order so per-user locks are taken in arrival order.
    With ``pending`` the tasks keep running in the background and are tracked
    in that set; without it this call waits for the whole batch.
    """
    updates = await telegram.get_updates(offset=offset, timeout=timeout)
    tasks: List[asyncio.Task] = []
    for update in updates:
        update_id = update.get("update_id")
        if isinstance(update_id, int):
            offset = update_id + 1
        tasks.append(asyncio.create_task(bot_router.dispatch_update(update)))
    if pending is None:
        await asyncio.gather(*tasks)
    else:
        for task in tasks:
            pending.add(task)
            task.add_done_callback(pending.discard)
    return offset


async def poll_loop(
    telegram: TelegramClient,
    bot_router: BotCommandRouter,
    *,
    timeout: int,
    stop_event: asyncio.Event,
    backoff_seconds: float = _ERROR_BACKOFF_SECONDS,
) -> None:
    """Poll until ``stop_event`` is set, then wait for in-flight updates."""
    offset: Optional[int] = None
    pending: Set[asyncio.Task] = set()
    try:
        while not stop_event.is_set():
            try:
                offset = await poll_once(telegram, bot_router, offset=offset, timeout=timeout, pending=pending)
            except TelegramApiError as exc:
                logger.error("getUpdates failed: %s", exc)
                await asyncio.sleep(backoff_seconds)
            except Exception:
                logger.exception("Polling iteration failed")
                await asyncio.sleep(backoff_seconds)
    finally:
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def run_polling(settings: BotSettings, *, stop_event: Optional[asyncio.Event] = None) -> None:
    context = LookupContext.from_settings(settings)
    context.store.initialize()
    telegram = TelegramClient(settings.bot_token or "", base_url=settings.telegram_api_base_url)
    bot_router = BotCommandRouter(context, telegram)

    try:
        await telegram.delete_webhook()
    except TelegramApiError as exc:
        logger.warning("Could not delete webhook before polling: %s", exc)

    logger.info("Polling Telegram for updates (timeout=%ss).", settings.telegram_poll_timeout)
    try:
        await poll_loop(
            telegram,
            bot_router,
            timeout=settings.telegram_poll_timeout,
            stop_event=stop_event or asyncio.Event(),
        )
    finally:
        await telegram.aclose()


def main() -> None:
    setup_logging()
    require_env_vars(["BOT_TOKEN"], context="Telegram polling")
    settings = load_settings()
    try:
        asyncio.run(run_polling(settings))
    except KeyboardInterrupt:
        logger.info("Polling stopped.")


if __name__ == "__main__":
    main()
