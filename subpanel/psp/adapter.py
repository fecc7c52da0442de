"""
Payment adapter base class and result types.
Every provider integration implements the same pay/notify contract.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional


class PayAction(IntEnum):
    """What the client must do with ``PayResult.data``."""
    QR_CODE = 0
    REDIRECT = 1
    CLIENT_SECRET = 2


@dataclass(frozen=True)
class PayResult:
    type: PayAction
    data: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"type": int(self.type), "data": self.data}


@dataclass(frozen=True)
class NotifyResult:
    """A settled payment, normalized across providers."""
    trade_no: str
    callback_no: str
    amount: Optional[int] = None
    currency: Optional[str] = None
    # Body to answer the provider with instead of "success"
    custom_result: Optional[str] = None


class PaymentAdapter(ABC):
    """
    Base adapter for payment providers.
    All provider implementations must inherit from this class.
    """

    # Registry key, also the {method} segment of the webhook URL
    name: str = ""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the adapter with a channel's stored config.

        Args:
            config: Values entered for the fields returned by ``form()``,
                plus the channel ``id``/``uuid``/``notify_url`` added by the
                payment service.
        """
        self.config = dict(config or {})

    @abstractmethod
    def form(self) -> Dict[str, Dict[str, Any]]:
        """
        Describe the channel configuration fields.

        Returns:
            Mapping of config key to ``{label, description, type}`` and
            optionally ``select_options`` and ``default``.
        """

    @abstractmethod
    def pay(self, order: Dict[str, Any]) -> PayResult:
        """
        Create a remote charge for an order.

        Args:
            order: ``trade_no``, ``total_amount`` (minor units of the base
                currency), ``user_id``, ``return_url`` and ``notify_url``.

        Returns:
            PayResult telling the client to redirect, show a QR code or
            complete the payment client-side.
        """

    @abstractmethod
    def notify(self, params: Dict[str, Any]) -> Optional[NotifyResult]:
        """
        Verify and interpret an inbound webhook.

        Args:
            params: ``raw_body`` (bytes) and ``headers`` of the request, plus
                any query/form parameters.

        Returns:
            NotifyResult for a completed payment, None for events that do
            not settle an order.

        Raises:
            VerificationError: signature or payload rejected.
        """

    def get_payment_status(self, payment_id: str) -> Optional[str]:
        return None

    def cancel_payment(self, payment_id: str) -> bool:
        return False

    def __repr__(self):
        return f"<{self.__class__.__name__}(name={self.name})>"
