"""
Telegram relay — forwards accepted submissions to a chat via the Bot API.

In development (no bot token / chat id configured), messages are logged
to the console so you can see what *would* be sent without a bot.
"""

from __future__ import annotations

import logging

import httpx

from formgate.config import TELEGRAM_API_BASE
from formgate.sanitize import clip_escaped
from formgate.services.collaborators import RelayMessage

logger = logging.getLogger(__name__)

# Telegram rejects sendMessage texts longer than this
TELEGRAM_MESSAGE_LIMIT = 4096


def render_message(msg: RelayMessage, limit: int = TELEGRAM_MESSAGE_LIMIT) -> str:
    """
    Build the HTML-mode text for *msg*.

    Fields arrive escaped; the message body is clipped so the whole text
    fits in *limit* characters.
    """
    header = (
        "<b>📬 New form submission</b>\n"
        f"<b>Email:</b> {msg.email}\n"
        f"<b>Subject:</b> {msg.subject}\n"
        f"<b>Client:</b> <code>{msg.client_tag}</code>\n"
        f"<b>Time:</b> {msg.submitted_at.strftime('%Y-%m-%d %H:%M:%S %Z')}\n"
        "\n"
    )
    budget = max(limit - len(header), 0)
    return header + clip_escaped(msg.message, budget)


class TelegramRelay:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        api_base: str = TELEGRAM_API_BASE,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._api_base = api_base
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def close(self) -> None:
        await self._client.aclose()

    async def deliver(self, message: RelayMessage) -> bool:
        text = render_message(message)

        # ── Console fallback (dev mode) ───────────────────────────────
        if not self.enabled:
            logger.info("📨 [DEV] Would send Telegram message:\n%s", text)
            return True

        # ── Real send ─────────────────────────────────────────────────
        url = f"{self._api_base}/bot{self._bot_token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            resp = await self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            # Never log the URL: it embeds the bot token
            logger.error("Telegram request failed: %s", type(exc).__name__)
            return False

        if resp.status_code != 200:
            logger.error("Telegram API error %d: %s", resp.status_code, resp.text[:500])
            return False
        try:
            ok = resp.json().get("ok") is True
        except ValueError:
            ok = False
        if not ok:
            logger.error("Telegram API did not acknowledge message: %s", resp.text[:500])
            return False

        logger.info("Telegram notification sent (client %s)", message.client_tag)
        return True
