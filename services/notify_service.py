"""
services/notify_service.py

Responsibility: Sends a Telegram message describing each successful record
create/change.
Does NOT: decide when to notify, or let a delivery failure reach the
reconciliation loop.
"""

from __future__ import annotations

import logging
import re
import socket

import httpx
from jinja2 import TemplateError

from shared_templates import templates

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"

_TEMPLATE_NAME = "telegram_message.j2"

# Characters Telegram requires to be escaped in MarkdownV2 text
_MD2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


def escape_markdown_v2(text: str) -> str:
    """Backslash-escapes every MarkdownV2 special character in text."""
    return _MD2_SPECIAL.sub(r"\\\1", text)


class NotifyService:
    """
    Telegram Bot API notifier.

    Uses its own httpx.AsyncClient (optionally routed through an HTTP proxy)
    so the proxy never applies to DNS provider traffic.

    Collaborators:
        - httpx.AsyncClient: injected; must be kept alive externally
        - shared_templates.templates: renders the message body
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        bot_token: str,
        chat_id: str,
        base_url: str = TELEGRAM_API_BASE,
    ) -> None:
        self._client = http_client
        self._chat_id = chat_id
        self._url = f"{base_url.rstrip('/')}/bot{bot_token}/sendMessage"

    def render(self, domain: str, new_ip: str, old_ip: str) -> str:
        """Renders the notification text, already escaped for MarkdownV2."""
        template = templates.get_template(_TEMPLATE_NAME)
        text = template.render(domain=domain, new_ip=new_ip, old_ip=old_ip, hostname=socket.gethostname())
        return escape_markdown_v2(text)

    async def notify(self, domain: str, new_ip: str, old_ip: str) -> bool:
        """
        Sends one change notification; failures are logged, never raised.

        Args:
            domain: The configured domain that changed.
            new_ip: The IP now published.
            old_ip: The previous IP, "" when the record was created.

        Returns:
            True if Telegram accepted the message.
        """
        try:
            text = self.render(domain, new_ip, old_ip)
        except TemplateError as exc:
            logger.warning("Failed to render Telegram message for %s: %s", domain, exc)
            return False

        payload = {"chat_id": self._chat_id, "text": text, "parse_mode": "MarkdownV2"}
        try:
            response = await self._client.post(self._url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Failed to send Telegram message for %s: status %d %s",
                domain,
                exc.response.status_code,
                exc.response.text,
            )
            return False
        except httpx.RequestError as exc:
            logger.warning("Failed to send Telegram message for %s: %s", domain, exc)
            return False

        logger.info("Sent Telegram message for %s", domain)
        return True
