"""Stripe payment adapter (cards, Alipay and WeChat Pay)."""
import json
from typing import Any, Dict, List, Optional, Tuple

import stripe

from ..config import settings
from ..exceptions import (
    ConfigurationError,
    UpstreamError,
    VerificationError,
)
from ..logging_config import get_logger
from ..services.exchange_service import ExchangeService, get_exchange_service
from .adapter import NotifyResult, PayAction, PaymentAdapter, PayResult
from .currency import convert_amount, ensure_minimum_amount
from .events import (
    CheckoutSessionCompleted,
    MalformedEventError,
    PaymentIntentFailed,
    PaymentIntentPending,
    PaymentIntentSucceeded,
    StripeEvent,
    UnhandledEvent,
    decode_event,
)

logger = get_logger(__name__)

SIGNATURE_HEADER = "stripe-signature"
THIRD_PARTY_METHODS = ("alipay", "wechat_pay")
SUPPORTED_METHODS = ("card",) + THIRD_PARTY_METHODS
CANCELLABLE_STATUSES = ("requires_payment_method", "requires_confirmation")


class StripeAdapter(PaymentAdapter):
    """
    Stripe channel with a configurable set of payment methods.

    - card only: hosted Checkout Session, client is redirected
    - alipay / wechat_pay only: confirmed PaymentIntent, redirect URL or QR
    - several methods: PaymentIntent, client completes it with Stripe.js
    """

    name = "Stripe"

    # Metadata keys that may carry the trade number, in lookup order
    trade_no_keys: Tuple[str, ...] = ("out_trade_no", "order_id")

    def __init__(
        self,
        config: Dict[str, Any],
        client: Optional[stripe.StripeClient] = None,
        exchange: Optional[ExchangeService] = None,
    ):
        super().__init__(config)
        self._client = client
        self.exchange = exchange if exchange is not None else get_exchange_service()

    def form(self) -> Dict[str, Dict[str, Any]]:
        return {
            "currency": {
                "label": "Currency",
                "description": "ISO 4217 three-letter code, e.g. USD, EUR, GBP, CNY",
                "type": "input",
                "default": "USD",
            },
            "stripe_sk_live": {
                "label": "Stripe Secret Key",
                "description": "sk_test_... or sk_live_...",
                "type": "input",
            },
            "stripe_pk_live": {
                "label": "Stripe Publishable Key",
                "description": "pk_test_... or pk_live_...",
                "type": "input",
            },
            "stripe_webhook_key": {
                "label": "Webhook Signing Secret",
                "description": "Stripe webhook endpoint secret (whsec_...)",
                "type": "input",
            },
            "description": {
                "label": "Product Description",
                "description": "Shown on the Stripe payment page",
                "type": "input",
                "default": "Subscription",
            },
            "payment_methods": {
                "label": "Payment Methods",
                "description": "Payment methods offered to the customer",
                "type": "select",
                "select_options": {
                    "card": "Cards",
                    "alipay": "Alipay",
                    "wechat_pay": "WeChat Pay",
                    "card,alipay": "Cards + Alipay",
                    "card,wechat_pay": "Cards + WeChat Pay",
                    "alipay,wechat_pay": "Alipay + WeChat Pay",
                    "card,alipay,wechat_pay": "All methods",
                },
                "default": "card",
            },
            "auto_currency_convert": {
                "label": "Automatic Currency Conversion",
                "description": f"Convert order amounts from {settings.BASE_CURRENCY} to the channel currency",
                "type": "select",
                "select_options": {"1": "Enabled", "0": "Disabled"},
                "default": "1",
            },
        }

    # ---- client ----
    @property
    def client(self) -> stripe.StripeClient:
        if self._client is None:
            secret_key = self.config.get("stripe_sk_live")
            if not secret_key:
                raise ConfigurationError("Stripe secret key is not configured")
            self._client = stripe.StripeClient(
                secret_key,
                http_client=stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT_SECONDS),
                max_network_retries=0,
            )
        return self._client

    # ---- pay ----
    def pay(self, order: Dict[str, Any]) -> PayResult:
        methods = self.payment_methods()
        currency = self.currency()
        amount = self.charge_amount(order, currency)
        ensure_minimum_amount(amount, currency)

        intent_data = {
            "amount": amount,
            "currency": currency,
            "metadata": self.order_metadata(order),
            "statement_descriptor_suffix": self.descriptor(order),
            "description": self.config.get("description") or "Subscription",
        }

        try:
            if len(methods) == 1 and methods[0] in THIRD_PARTY_METHODS:
                result = self._pay_single_method(intent_data, methods[0], order)
            elif methods == ["card"]:
                result = self._pay_card(intent_data, order)
            else:
                result = self._pay_multiple_methods(intent_data, methods, order)
        except stripe.StripeError as e:
            logger.error(
                "stripe_payment_create_failed",
                trade_no=order.get("trade_no"),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamError(f"Stripe API error: {e}")

        logger.info(
            "stripe_payment_created",
            trade_no=order.get("trade_no"),
            amount=amount,
            currency=currency,
            methods=methods,
            action=result.type.name,
        )
        return result

    def currency(self) -> str:
        return str(self.config.get("currency") or "USD").strip().lower()

    def should_convert(self, currency: str) -> bool:
        enabled = str(self.config.get("auto_currency_convert", "1")) == "1"
        return enabled and currency != settings.BASE_CURRENCY.lower()

    def charge_amount(self, order: Dict[str, Any], currency: str) -> int:
        amount = int(order["total_amount"])
        if not self.should_convert(currency):
            return amount
        # Reject before spending an exchange-rate lookup on it
        ensure_minimum_amount(amount, settings.BASE_CURRENCY)
        rate = self.exchange.get_rate(settings.BASE_CURRENCY, currency)
        return convert_amount(amount, settings.BASE_CURRENCY, currency, rate)

    def payment_methods(self) -> List[str]:
        raw = self.config.get("payment_methods") or "card"
        methods = [m.strip() for m in str(raw).split(",") if m.strip()]
        unsupported = [m for m in methods if m not in SUPPORTED_METHODS]
        if unsupported or not methods:
            raise ConfigurationError(f"Unsupported payment method: {', '.join(unsupported) or raw}")
        return methods

    def order_metadata(self, order: Dict[str, Any]) -> Dict[str, str]:
        return {
            "user_id": str(order.get("user_id") or ""),
            "out_trade_no": order["trade_no"],
            "order_id": order["trade_no"],
        }

    def descriptor(self, order: Dict[str, Any]) -> str:
        return f"sub-{order.get('user_id') or ''}-{str(order['trade_no'])[-8:]}"

    def _pay_single_method(self, intent_data: Dict[str, Any], method: str, order: Dict[str, Any]) -> PayResult:
        payment_method = self.client.v1.payment_methods.create(params={"type": method})

        params = dict(intent_data)
        params["confirm"] = True
        params["payment_method"] = payment_method.id
        params["payment_method_types"] = [method]
        params["return_url"] = order["return_url"]
        if method == "wechat_pay":
            params["payment_method_options"] = {"wechat_pay": {"client": "web"}}

        intent = self.client.v1.payment_intents.create(params=params)
        next_action = getattr(intent, "next_action", None)
        if not next_action:
            raise UpstreamError("Payment gateway request failed - no next action")

        if method == "alipay":
            redirect = getattr(next_action, "alipay_handle_redirect", None)
            if redirect is None:
                raise UpstreamError("Unable to get Alipay redirect URL")
            return PayResult(PayAction.REDIRECT, redirect.url)

        qr_code = getattr(next_action, "wechat_pay_display_qr_code", None)
        if qr_code is None:
            raise UpstreamError("Unable to get WeChat Pay QR code")
        return PayResult(PayAction.QR_CODE, qr_code.data)

    def checkout_params(self, intent_data: Dict[str, Any], order: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "success_url": order["return_url"],
            "cancel_url": order["return_url"],
            "client_reference_id": order["trade_no"],
            "payment_method_types": ["card"],
            "line_items": [{
                "price_data": {
                    "currency": intent_data["currency"],
                    "unit_amount": intent_data["amount"],
                    "product_data": {
                        "name": intent_data["statement_descriptor_suffix"],
                        "description": intent_data["description"],
                    },
                },
                "quantity": 1,
            }],
            "mode": "payment",
            "metadata": intent_data["metadata"],
        }

    def _pay_card(self, intent_data: Dict[str, Any], order: Dict[str, Any]) -> PayResult:
        session = self.client.v1.checkout.sessions.create(params=self.checkout_params(intent_data, order))
        return PayResult(PayAction.REDIRECT, session.url)

    def _pay_multiple_methods(self, intent_data: Dict[str, Any], methods: List[str], order: Dict[str, Any]) -> PayResult:
        params = dict(intent_data)
        params["payment_method_types"] = methods
        if "wechat_pay" in methods:
            params["payment_method_options"] = {"wechat_pay": {"client": "web"}}

        intent = self.client.v1.payment_intents.create(params=params)
        return PayResult(PayAction.CLIENT_SECRET, {
            "client_secret": intent.client_secret,
            "publishable_key": self.config.get("stripe_pk_live"),
            "payment_intent_id": intent.id,
            "amount": intent_data["amount"],
            "currency": intent_data["currency"],
            "payment_methods": methods,
            "return_url": order["return_url"],
        })

    # ---- notify ----
    def notify(self, params: Dict[str, Any]) -> Optional[NotifyResult]:
        event = self.verify(params)
        logger.info("stripe_webhook_verified", event_id=event.event_id, event_shape=type(event).__name__)
        return self.resolve(event)

    def verify(self, params: Dict[str, Any]) -> StripeEvent:
        """Check the Stripe-Signature header and decode the event body."""
        webhook_secret = self.config.get("stripe_webhook_key")
        if not webhook_secret:
            raise ConfigurationError("Stripe webhook secret is not configured")

        payload = params.get("raw_body") or b""
        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError:
                raise VerificationError("Error parsing payload: body is not UTF-8")
        signature = _header(params.get("headers") or {}, SIGNATURE_HEADER)
        if not payload or not signature:
            raise VerificationError("Missing payload or signature")

        try:
            stripe.WebhookSignature.verify_header(
                payload, signature, webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("stripe_webhook_signature_failed", error=str(e))
            raise VerificationError(f"Invalid signature: {e}")

        try:
            return decode_event(json.loads(payload))
        except (ValueError, MalformedEventError) as e:
            logger.warning("stripe_webhook_invalid_payload", error=str(e))
            raise VerificationError(f"Error parsing payload: {e}")

    def resolve(self, event: StripeEvent) -> Optional[NotifyResult]:
        """Map a decoded event to a settlement, or None when nothing is paid."""
        if isinstance(event, PaymentIntentSucceeded):
            return self._from_payment_intent(event)
        if isinstance(event, CheckoutSessionCompleted):
            return self._from_checkout_session(event)
        if isinstance(event, PaymentIntentFailed):
            logger.warning(
                "stripe_payment_failed",
                intent_id=event.intent_id,
                error_code=event.error_code,
                error_message=event.error_message,
            )
            return None
        if isinstance(event, PaymentIntentPending):
            logger.debug("stripe_event_pending", event_id=event.event_id, object_id=event.object_id)
            return None
        if isinstance(event, UnhandledEvent):
            logger.info("stripe_event_unhandled", event_id=event.event_id, event_type=event.type)
            return None
        logger.warning("stripe_event_unmapped", event_shape=type(event).__name__)
        return None

    def trade_no_from_metadata(self, metadata: Dict[str, str]) -> Optional[str]:
        for key in self.trade_no_keys:
            if metadata.get(key):
                return metadata[key]
        return None

    def _from_payment_intent(self, event: PaymentIntentSucceeded) -> Optional[NotifyResult]:
        if event.status != "succeeded":
            return None
        trade_no = self.trade_no_from_metadata(event.metadata)
        if not trade_no:
            logger.error("stripe_webhook_trade_no_missing", intent_id=event.intent_id, keys=list(self.trade_no_keys))
            return None
        return NotifyResult(
            trade_no=trade_no,
            callback_no=event.intent_id,
            amount=event.amount,
            currency=event.currency,
        )

    def _from_checkout_session(self, event: CheckoutSessionCompleted) -> Optional[NotifyResult]:
        # Async-succeeded sessions are paid by definition
        if type(event) is CheckoutSessionCompleted and event.payment_status != "paid":
            return None
        if not event.client_reference_id:
            logger.error("stripe_webhook_trade_no_missing", session_id=event.session_id)
            return None
        return NotifyResult(
            trade_no=event.client_reference_id,
            callback_no=event.payment_intent or event.session_id,
            amount=event.amount_total,
            currency=event.currency,
        )

    # ---- intent management ----
    def get_payment_status(self, payment_id: str) -> Optional[str]:
        try:
            intent = self.client.v1.payment_intents.retrieve(payment_id)
            return intent.status
        except stripe.StripeError as e:
            logger.error("stripe_get_payment_status_failed", payment_intent_id=payment_id, error=str(e))
            return None

    def cancel_payment(self, payment_id: str) -> bool:
        try:
            intent = self.client.v1.payment_intents.retrieve(payment_id)
            if intent.status not in CANCELLABLE_STATUSES:
                return False
            self.client.v1.payment_intents.cancel(payment_id)
            logger.info("stripe_payment_cancelled", payment_intent_id=payment_id)
            return True
        except stripe.StripeError as e:
            logger.error("stripe_cancel_payment_failed", payment_intent_id=payment_id, error=str(e))
            return False


def _header(headers: Dict[str, Any], name: str) -> str:
    for key, value in headers.items():
        if key.lower() == name:
            if isinstance(value, (list, tuple)):
                return value[0] if value else ""
            return value or ""
    return ""
