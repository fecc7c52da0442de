"""
Telegram operator alerts.
Messages go to every configured admin chat; delivery problems are logged and
never interrupt the caller.
"""
from typing import List, Optional

import httpx

from ..config import settings
from ..logging_config import get_logger
from ..models import Order, Payment

logger = get_logger(__name__)


class TelegramService:
    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_ids: Optional[List[str]] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.bot_token = bot_token if bot_token is not None else settings.TELEGRAM_BOT_TOKEN
        self.chat_ids = chat_ids if chat_ids is not None else settings.telegram_admin_chat_ids
        self.api_base = (api_base or settings.TELEGRAM_API_BASE).rstrip("/")
        self.timeout = timeout or settings.TELEGRAM_TIMEOUT_SECONDS
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_ids)

    def send_message(self, chat_id: str, text: str, parse_mode: str = "markdown") -> bool:
        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        body = {"chat_id": chat_id, "text": text, "parse_mode": parse_mode}
        try:
            if self._http_client is not None:
                resp = self._http_client.post(url, json=body, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    resp = client.post(url, json=body)
            resp.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error("telegram_send_failed", chat_id=chat_id, error=str(e), error_type=type(e).__name__)
            return False

    def send_message_with_admin(self, text: str) -> int:
        """Send ``text`` to all admin chats. Returns the number delivered."""
        if not self.is_configured:
            logger.debug("telegram_not_configured")
            return 0
        delivered = sum(1 for chat_id in self.chat_ids if self.send_message(chat_id, text))
        logger.info("telegram_admin_notified", delivered=delivered, total=len(self.chat_ids))
        return delivered


def payment_received_message(order: Order, payment: Optional[Payment]) -> str:
    return (
        f"💰 Payment received: {order.total_amount / 100:.2f} {settings.BASE_CURRENCY}\n"
        "---------------\n"
        f"Gateway: {payment.payment if payment else '-'}\n"
        f"Channel: {payment.name if payment else '-'}\n"
        f"Order: `{order.trade_no}`"
    )


def get_notifier() -> TelegramService:
    return TelegramService()
