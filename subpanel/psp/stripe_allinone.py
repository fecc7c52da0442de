"""
Legacy single-method Stripe channel.

Channels created before the multi-method adapter store a single
``payment_method`` (``alipay``, ``wechat_pay`` or ``cards``) and their
intents only carry ``out_trade_no`` in metadata.
"""
from typing import Any, Dict, List

from ..exceptions import ConfigurationError
from .stripe_adapter import StripeAdapter

LEGACY_METHODS = {
    "alipay": "alipay",
    "wechat_pay": "wechat_pay",
    "cards": "card",
}


class StripeAllInOneAdapter(StripeAdapter):
    name = "StripeALLInOne"
    trade_no_keys = ("out_trade_no",)

    def form(self) -> Dict[str, Dict[str, Any]]:
        return {
            "currency": {
                "label": "Currency",
                "description": "ISO 4217 three-letter code, e.g. GBP",
                "type": "input",
            },
            "stripe_sk_live": {
                "label": "SK_LIVE",
                "description": "",
                "type": "input",
            },
            "stripe_webhook_key": {
                "label": "Webhook Signing Secret",
                "description": "whsec_....",
                "type": "input",
            },
            "description": {
                "label": "Product Description",
                "description": "",
                "type": "input",
            },
            "payment_method": {
                "label": "Payment Method",
                "description": "Payment method offered to the customer",
                "type": "select",
                "select_options": {
                    "alipay": "Alipay",
                    "wechat_pay": "WeChat Pay",
                    "cards": "Cards",
                },
                "default": "cards",
            },
        }

    def payment_methods(self) -> List[str]:
        selected = str(self.config.get("payment_method") or "cards").strip()
        if selected not in LEGACY_METHODS:
            raise ConfigurationError(f"Unsupported payment method: {selected}")
        return [LEGACY_METHODS[selected]]

    def should_convert(self, currency: str) -> bool:
        # Legacy channels always price through the exchange service
        return True

    def order_metadata(self, order: Dict[str, Any]) -> Dict[str, str]:
        return {
            "user_id": str(order.get("user_id") or ""),
            "out_trade_no": order["trade_no"],
        }

    def checkout_params(self, intent_data: Dict[str, Any], order: Dict[str, Any]) -> Dict[str, Any]:
        params = super().checkout_params(intent_data, order)
        params.pop("cancel_url", None)
        params.pop("metadata", None)
        return params
