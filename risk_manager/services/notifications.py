"""Telegram notifications for operator alerts.

Delivery is best effort: a failed send is logged and never raised back into
the caller.
"""

import html
import logging
from typing import Optional, Protocol

import httpx
from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

logger = logging.getLogger(__name__)

MESSAGE_PREFIX = "[RISK-MANAGER]"


class NotificationSink(Protocol):
    async def notify_error(self, message: str, error: BaseException | None = None) -> None: ...

    async def notify(self, message: str) -> None: ...


def format_error(message: str, error: BaseException | None = None) -> str:
    """Render an error alert as Telegram HTML."""
    text = f"{MESSAGE_PREFIX} ERROR ⚠️\n<b>Error:</b> {html.escape(message)}\n"
    if error is not None:
        text += f"<pre>{html.escape(str(error))}</pre>\n"
    return text


def format_message(message: str) -> str:
    return f"{MESSAGE_PREFIX} 🚨\n{html.escape(message)}\n"


class TelegramNotifier:
    """Sends alerts to every whitelisted chat. Without a token, alerts are only logged."""

    def __init__(self, token: str, chat_ids: list[int], bot: Optional[Bot] = None):
        self.chat_ids = list(chat_ids)
        self._bot = bot if bot is not None else (Bot(token) if token else None)
        self._initialized = False

    @property
    def enabled(self) -> bool:
        return self._bot is not None and bool(self.chat_ids)

    async def notify_error(self, message: str, error: BaseException | None = None):
        """Send an error alert, with the error detail in a preformatted block."""
        await self._send(format_error(message, error))

    async def notify(self, message: str):
        await self._send(format_message(message))

    async def _send(self, text: str):
        if not self.enabled:
            logger.debug(f"Telegram disabled, not sending: {text}")
            return

        logger.debug(f"Sending telegram message: {text}")
        try:
            if not self._initialized:
                await self._bot.initialize()
                self._initialized = True
        except (TelegramError, httpx.HTTPError) as e:
            logger.error(f"Error initializing telegram bot: {e}")
            return
        except Exception:
            logger.exception("Unexpected error initializing telegram bot")
            return

        for chat_id in self.chat_ids:
            try:
                await self._bot.send_message(chat_id=chat_id, text=text, parse_mode=ParseMode.HTML)
            except (TelegramError, httpx.HTTPError) as e:
                logger.error(f"Error sending telegram message to {chat_id}: {e}")
            except Exception:
                logger.exception(f"Unexpected error sending telegram message to {chat_id}")

    async def close(self):
        if self._bot is not None and self._initialized:
            await self._bot.shutdown()
            self._initialized = False
