"""
Payment channel facade.

Loads a channel row, instantiates its adapter with the stored config and
forwards pay/notify calls to it.
"""
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import ApiException, ConfigurationError
from ..logging_config import get_logger
from ..models import Payment
from ..psp.adapter import NotifyResult, PaymentAdapter, PayResult
from ..psp.dispatcher import PSPDispatcher

logger = get_logger(__name__)

NOTIFY_PATH = "/api/v1/guest/payment/notify"


class PaymentService:
    def __init__(
        self,
        method: str,
        id: Optional[int] = None,
        uuid: Optional[str] = None,
        db: Optional[Session] = None,
    ):
        self.method = method
        self.adapter_cls = PSPDispatcher.get_adapter_class(method)
        self.payment: Optional[Payment] = None

        if id is not None or uuid is not None:
            if db is None:
                raise ValueError("db session is required to load a payment channel")
            query = db.query(Payment)
            query = query.filter(Payment.id == id) if id is not None else query.filter(Payment.uuid == uuid)
            self.payment = query.first()
            if self.payment is None or self.payment.payment != method:
                raise ConfigurationError("payment channel is not found", status_code=404)

        self.config: Dict[str, Any] = dict(self.payment.config or {}) if self.payment else {}
        if self.payment:
            self.config.update({
                "enable": self.payment.enable,
                "id": self.payment.id,
                "uuid": self.payment.uuid,
                "notify_domain": self.payment.notify_domain,
            })
        self.adapter: PaymentAdapter = self.adapter_cls(self.config)

    def notify_url(self) -> str:
        if self.payment is None:
            raise ConfigurationError("payment channel is not loaded")
        base = (self.payment.notify_domain or settings.APP_URL).rstrip("/")
        return f"{base}{NOTIFY_PATH}/{self.method}/{self.payment.uuid}"

    def pay(self, order: Dict[str, Any]) -> PayResult:
        order = dict(order)
        order["notify_url"] = self.notify_url()
        logger.info(
            "payment_pay_started",
            method=self.method,
            channel_id=self.payment.id if self.payment else None,
            trade_no=order.get("trade_no"),
            total_amount=order.get("total_amount"),
        )
        return self.adapter.pay(order)

    def notify(self, params: Dict[str, Any]) -> Optional[NotifyResult]:
        if not self.config.get("enable"):
            raise ApiException("gate is not enable", status_code=400)
        return self.adapter.notify(params)

    def form(self) -> Dict[str, Dict[str, Any]]:
        """Adapter form with each field's ``value`` filled from the stored config."""
        fields = self.adapter.form()
        return {
            key: {**field, "value": self.config.get(key, field.get("default", ""))}
            for key, field in fields.items()
        }
