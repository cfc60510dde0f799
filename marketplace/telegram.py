"""
Client for the Telegram Bot API, used as the external messaging channel
"""
import datetime as dt
import logging

import requests

from . import config

logger = logging.getLogger(__name__)


class TelegramDeliveryError(Exception):
    pass


def is_configured() -> bool:
    return bool(config.TELEGRAM_BOT_TOKEN)


def format_message(title: str, message: str, when: dt.datetime | None = None) -> str:
    when = when or dt.datetime.now(dt.timezone.utc)
    return f"🔔 *{title}*\n\n{message}\n\n📅 {when.strftime('%Y-%m-%d %H:%M')} UTC"


def send_message(chat_id: str, text: str) -> dict:
    """Send one message. Raises TelegramDeliveryError on any failure."""
    url = f"{config.TELEGRAM_API_URL}/bot{config.TELEGRAM_BOT_TOKEN}/sendMessage"
    try:
        response = requests.post(
            url,
            json={"chat_id": chat_id, "text": text, "parse_mode": "Markdown"},
            timeout=config.TELEGRAM_TIMEOUT_SECONDS,
        )
    except requests.exceptions.RequestException as e:
        raise TelegramDeliveryError(f"Telegram is unavailable: {e}") from e

    if response.status_code != 200:
        raise TelegramDeliveryError(
            f"Telegram rejected message for chat {chat_id}: {response.status_code} {response.text}"
        )

    body = response.json()
    if not body.get("ok", False):
        raise TelegramDeliveryError(f"Telegram error for chat {chat_id}: {body.get('description')}")
    return body
