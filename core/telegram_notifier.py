"""
Telegram notifications for swap outcomes.

Messages are queued without blocking the swap flow and sent in batches by a
worker task on the running event loop.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import List, Optional

log = logging.getLogger(__name__)

TELEGRAM_CONFIG_PATH = "telegram_config.json"
MAX_MESSAGE_CHARS = 4000


@dataclass
class TelegramConfig:
    """Configuration for Telegram notifications."""
    bot_token: str
    chat_id: str
    enabled: bool = True
    batch_interval: float = 30.0  # seconds between batched sends
    max_batch_size: int = 10


LEVEL_EMOJI = {
    "critical": "🔴",
    "warning": "⚠️",
    "success": "✅",
    "info": "ℹ️",
}


class TelegramNotifier:
    """
    Batching Telegram notifier.

    notify() only formats and enqueues. start() runs the sender on the
    current loop; stop() flushes what is left.
    """

    def __init__(self, config: TelegramConfig, bot=None):
        self.config = config
        self._queue: asyncio.Queue = asyncio.Queue()
        self._batch: List[str] = []
        self._last_send_time: float = 0.0
        self._task: Optional[asyncio.Task] = None
        self._bot = bot

        if self.config.enabled and self._bot is None:
            # Lazy import so the bot library is only needed when notifications are on
            from telegram import Bot
            self._bot = Bot(token=self.config.bot_token)

    def start(self) -> None:
        if not self.config.enabled or self._task is not None:
            return
        self._task = asyncio.create_task(self._worker_loop())

    async def _worker_loop(self) -> None:
        while True:
            try:
                msg = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                self._batch.append(msg)
            except asyncio.TimeoutError:
                pass
            now = time.time()
            if len(self._batch) >= self.config.max_batch_size or (
                self._batch and now - self._last_send_time >= self.config.batch_interval
            ):
                await self.flush()

    def _drain_queue(self) -> None:
        while True:
            try:
                self._batch.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return

    async def _send_batch(self, messages: List[str]) -> None:
        if not messages or not self._bot:
            return
        combined = "\n\n".join(messages)
        if len(combined) > MAX_MESSAGE_CHARS:
            overflow = len(combined) - MAX_MESSAGE_CHARS
            combined = combined[:MAX_MESSAGE_CHARS] + f"... (+{overflow} chars truncated)"
        try:
            await self._bot.send_message(chat_id=self.config.chat_id, text=combined, parse_mode="HTML")
        except Exception as e:
            # A notification failure must never fail the swap that triggered it
            log.warning("[Telegram] Send error: %s", e)

    def notify(self, message: str, level: str = "info") -> None:
        if not self.config.enabled or not message or not message.strip():
            return
        timestamp = datetime.now().strftime("%H:%M:%S")
        emoji = LEVEL_EMOJI.get(level, "📝")
        self._queue.put_nowait(f"{emoji} <b>[{timestamp}]</b> {message}")

    def notify_critical(self, message: str) -> None:
        self.notify(message, level="critical")

    def notify_success(self, message: str) -> None:
        self.notify(message, level="success")

    def notify_warning(self, message: str) -> None:
        self.notify(message, level="warning")

    def notify_info(self, message: str) -> None:
        self.notify(message, level="info")

    async def flush(self) -> None:
        """Send everything queued so far as one message."""
        if not self.config.enabled:
            return
        self._drain_queue()
        if not self._batch:
            return
        batch, self._batch = self._batch, []
        self._last_send_time = time.time()
        await self._send_batch(batch)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        await self.flush()


def load_config(config_path: str = TELEGRAM_CONFIG_PATH) -> Optional[TelegramConfig]:
    """Load Telegram configuration from JSON; None if missing or unreadable."""
    if not os.path.exists(config_path):
        return None
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log.warning("[Telegram] Failed to load config: %s", e)
        return None
    return TelegramConfig(
        bot_token=data.get("bot_token", ""),
        chat_id=str(data.get("chat_id", "")),
        enabled=data.get("enabled", True),
        batch_interval=float(data.get("batch_interval", 30.0)),
        max_batch_size=int(data.get("max_batch_size", 10)),
    )


def save_config(config: TelegramConfig, config_path: str = TELEGRAM_CONFIG_PATH) -> None:
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(asdict(config), f, indent=2)


def get_notifier(config_path: str = TELEGRAM_CONFIG_PATH) -> Optional[TelegramNotifier]:
    """Build a notifier from the saved config, or None when notifications are off."""
    config = load_config(config_path)
    if config is None or not config.enabled or not config.bot_token or not config.chat_id:
        return None
    return TelegramNotifier(config)
