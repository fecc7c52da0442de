import json
import unittest
from types import SimpleNamespace
from unittest import mock

import httpx
import stripe

from subpanel.exceptions import AmountTooLowError, ConfigurationError, UpstreamError, VerificationError
from subpanel.psp.adapter import PayAction
from subpanel.psp.stripe_adapter import StripeAdapter
from subpanel.services.exchange_service import ExchangeService
from tests.support import (
    FixedRates,
    intent_succeeded,
    notify_params,
    stripe_config,
    stripe_event,
    stripe_signature,
)

ORDER = {
    "trade_no": "202610170000123456",
    "total_amount": 1000,
    "user_id": 7,
    "return_url": "https://panel.example/#/order/202610170000123456",
    "notify_url": "https://panel.example/api/v1/guest/payment/notify/Stripe/chan0001",
}


def _adapter(client=None, exchange=None, **config):
    return StripeAdapter(
        stripe_config(**config),
        client=client if client is not None else mock.MagicMock(),
        exchange=exchange if exchange is not None else FixedRates(),
    )


class TestStripeNotify(unittest.TestCase):
    def test_payment_intent_succeeded(self):
        result = _adapter().notify(notify_params(intent_succeeded("T100", intent_id="pi_100")))
        self.assertEqual(result.trade_no, "T100")
        self.assertEqual(result.callback_no, "pi_100")
        self.assertEqual(result.amount, 1400)

    def test_order_id_metadata_key(self):
        result = _adapter().notify(notify_params(intent_succeeded("T101", metadata_key="order_id")))
        self.assertEqual(result.trade_no, "T101")

    def test_missing_trade_no(self):
        payload = stripe_event("payment_intent.succeeded", {"id": "pi_1", "status": "succeeded", "metadata": {}})
        self.assertIsNone(_adapter().notify(notify_params(payload)))

    def test_checkout_session_completed(self):
        obj = {"id": "cs_1", "client_reference_id": "T102", "payment_intent": "pi_102", "payment_status": "paid"}
        result = _adapter().notify(notify_params(stripe_event("checkout.session.completed", obj)))
        self.assertEqual((result.trade_no, result.callback_no), ("T102", "pi_102"))

    def test_unpaid_checkout_session_is_ignored(self):
        obj = {"id": "cs_1", "client_reference_id": "T102", "payment_intent": None, "payment_status": "unpaid"}
        self.assertIsNone(_adapter().notify(notify_params(stripe_event("checkout.session.completed", obj))))

    def test_async_payment_succeeded(self):
        obj = {"id": "cs_2", "client_reference_id": "T103", "payment_intent": None, "payment_status": "unpaid"}
        result = _adapter().notify(notify_params(stripe_event("checkout.session.async_payment_succeeded", obj)))
        self.assertEqual((result.trade_no, result.callback_no), ("T103", "cs_2"))

    def test_failed_pending_and_unknown_events(self):
        payloads = [
            stripe_event("payment_intent.payment_failed", {"id": "pi_1", "last_payment_error": {"code": "x"}}),
            stripe_event("payment_intent.requires_action", {"id": "pi_1", "object": "payment_intent"}),
            stripe_event("payment_method.attached", {"id": "pm_1", "object": "payment_method"}),
            stripe_event("customer.created", {"id": "cus_1"}),
        ]
        for payload in payloads:
            self.assertIsNone(_adapter().notify(notify_params(payload)))

    def test_invalid_signature(self):
        params = notify_params(intent_succeeded("T100"), secret="whsec_other")
        with self.assertRaises(VerificationError):
            _adapter().notify(params)

    def test_tampered_payload(self):
        params = notify_params(intent_succeeded("T100"))
        params["raw_body"] = intent_succeeded("T999").encode("utf-8")
        with self.assertRaises(VerificationError):
            _adapter().notify(params)

    def test_expired_signature(self):
        payload = intent_succeeded("T100")
        params = {"raw_body": payload.encode(), "headers": {"stripe-signature": stripe_signature(payload, timestamp=1)}}
        with self.assertRaises(VerificationError):
            _adapter().notify(params)

    def test_header_lookup_is_case_insensitive(self):
        payload = intent_succeeded("T104")
        params = {"raw_body": payload.encode(), "headers": {"Stripe-Signature": [stripe_signature(payload)]}}
        self.assertEqual(_adapter().notify(params).trade_no, "T104")

    def test_missing_signature(self):
        with self.assertRaises(VerificationError):
            _adapter().notify({"raw_body": intent_succeeded("T100").encode(), "headers": {}})

    def test_signed_garbage(self):
        for payload in ("not json", json.dumps({"id": "evt", "type": "x"})):
            with self.assertRaises(VerificationError):
                _adapter().notify(notify_params(payload))

    def test_missing_webhook_secret(self):
        with self.assertRaises(ConfigurationError):
            _adapter(stripe_webhook_key="").notify(notify_params(intent_succeeded("T100")))


class TestStripePay(unittest.TestCase):
    def test_card_checkout_session(self):
        client = mock.MagicMock()
        client.v1.checkout.sessions.create.return_value = SimpleNamespace(url="https://checkout.stripe.com/c/1")

        result = _adapter(client).pay(ORDER)

        self.assertEqual(result.type, PayAction.REDIRECT)
        self.assertEqual(result.data, "https://checkout.stripe.com/c/1")
        params = client.v1.checkout.sessions.create.call_args.kwargs["params"]
        self.assertEqual(params["client_reference_id"], ORDER["trade_no"])
        self.assertEqual(params["line_items"][0]["price_data"]["unit_amount"], 1000)
        self.assertEqual(params["metadata"]["out_trade_no"], ORDER["trade_no"])
        self.assertEqual(params["metadata"]["order_id"], ORDER["trade_no"])

    def test_alipay_redirect(self):
        client = mock.MagicMock()
        client.v1.payment_methods.create.return_value = SimpleNamespace(id="pm_1")
        client.v1.payment_intents.create.return_value = SimpleNamespace(
            next_action=SimpleNamespace(alipay_handle_redirect=SimpleNamespace(url="https://alipay.example/pay"))
        )

        result = _adapter(client, payment_methods="alipay").pay(ORDER)

        self.assertEqual(result.to_dict(), {"type": 1, "data": "https://alipay.example/pay"})
        client.v1.payment_methods.create.assert_called_once_with(params={"type": "alipay"})
        params = client.v1.payment_intents.create.call_args.kwargs["params"]
        self.assertTrue(params["confirm"])
        self.assertEqual(params["payment_method"], "pm_1")
        self.assertEqual(params["return_url"], ORDER["return_url"])
        self.assertEqual(params["statement_descriptor_suffix"], "sub-7-00123456")

    def test_wechat_pay_qr_code(self):
        client = mock.MagicMock()
        client.v1.payment_methods.create.return_value = SimpleNamespace(id="pm_2")
        client.v1.payment_intents.create.return_value = SimpleNamespace(
            next_action=SimpleNamespace(wechat_pay_display_qr_code=SimpleNamespace(data="weixin://wxpay/1"))
        )

        result = _adapter(client, payment_methods="wechat_pay").pay(ORDER)

        self.assertEqual(result.type, PayAction.QR_CODE)
        self.assertEqual(result.data, "weixin://wxpay/1")
        params = client.v1.payment_intents.create.call_args.kwargs["params"]
        self.assertEqual(params["payment_method_options"], {"wechat_pay": {"client": "web"}})

    def test_missing_next_action(self):
        client = mock.MagicMock()
        client.v1.payment_methods.create.return_value = SimpleNamespace(id="pm_1")
        client.v1.payment_intents.create.return_value = SimpleNamespace(next_action=None)
        with self.assertRaises(UpstreamError):
            _adapter(client, payment_methods="alipay").pay(ORDER)

    def test_multiple_methods_client_secret(self):
        client = mock.MagicMock()
        client.v1.payment_intents.create.return_value = SimpleNamespace(id="pi_5", client_secret="pi_5_secret")

        result = _adapter(client, payment_methods="card,alipay").pay(ORDER)

        self.assertEqual(result.type, PayAction.CLIENT_SECRET)
        self.assertEqual(result.data["client_secret"], "pi_5_secret")
        self.assertEqual(result.data["publishable_key"], "pk_test_123")
        self.assertEqual(result.data["payment_methods"], ["card", "alipay"])
        params = client.v1.payment_intents.create.call_args.kwargs["params"]
        self.assertEqual(params["payment_method_types"], ["card", "alipay"])
        self.assertNotIn("confirm", params)

    def test_amount_is_converted(self):
        client = mock.MagicMock()
        client.v1.checkout.sessions.create.return_value = SimpleNamespace(url="https://checkout")
        rates = FixedRates({("cny", "usd"): 0.1389})

        _adapter(client, rates, auto_currency_convert="1").pay(ORDER)

        self.assertEqual(rates.calls, [("cny", "usd")])
        params = client.v1.checkout.sessions.create.call_args.kwargs["params"]
        self.assertEqual(params["line_items"][0]["price_data"]["unit_amount"], 138)

    def test_zero_decimal_currency(self):
        client = mock.MagicMock()
        client.v1.checkout.sessions.create.return_value = SimpleNamespace(url="https://checkout")
        rates = FixedRates({("cny", "jpy"): 20.5})

        _adapter(client, rates, currency="JPY", auto_currency_convert="1").pay(ORDER)

        params = client.v1.checkout.sessions.create.call_args.kwargs["params"]
        self.assertEqual(params["line_items"][0]["price_data"]["unit_amount"], 205)

    def test_below_minimum_makes_no_remote_call(self):
        client = mock.MagicMock()
        with self.assertRaises(AmountTooLowError):
            _adapter(client).pay(dict(ORDER, total_amount=49))
        self.assertEqual(client.mock_calls, [])

    def test_below_minimum_skips_exchange_lookup(self):
        client = mock.MagicMock()
        rates = FixedRates({("cny", "usd"): 0.14})
        with self.assertRaises(AmountTooLowError):
            _adapter(client, rates, auto_currency_convert="1").pay(dict(ORDER, total_amount=10))
        self.assertEqual(rates.calls, [])
        self.assertEqual(client.mock_calls, [])

    def test_round_amount_converts_exactly(self):
        client = mock.MagicMock()
        client.v1.checkout.sessions.create.return_value = SimpleNamespace(url="https://checkout")
        rates = FixedRates({("cny", "usd"): 0.29})

        _adapter(client, rates, auto_currency_convert="1").pay(dict(ORDER, total_amount=300))

        params = client.v1.checkout.sessions.create.call_args.kwargs["params"]
        self.assertEqual(params["line_items"][0]["price_data"]["unit_amount"], 87)

    def test_converted_amount_below_minimum(self):
        client = mock.MagicMock()
        rates = FixedRates({("cny", "usd"): 0.14})
        with self.assertRaises(AmountTooLowError):
            _adapter(client, rates, auto_currency_convert="1").pay(dict(ORDER, total_amount=300))
        self.assertEqual(client.mock_calls, [])

    def test_exchange_failure_fails_cleanly(self):
        client = mock.MagicMock()
        http = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        exchange = ExchangeService(fixed_rates={}, http_client=http)

        with self.assertRaises(UpstreamError):
            _adapter(client, exchange, auto_currency_convert="1").pay(ORDER)
        self.assertEqual(client.mock_calls, [])

    def test_stripe_error_is_wrapped(self):
        client = mock.MagicMock()
        client.v1.checkout.sessions.create.side_effect = stripe.APIConnectionError("connection reset")
        with self.assertRaises(UpstreamError) as ctx:
            _adapter(client).pay(ORDER)
        self.assertIn("Stripe API error", ctx.exception.message)

    def test_unsupported_payment_method(self):
        with self.assertRaises(ConfigurationError):
            _adapter(payment_methods="card,paypal").pay(ORDER)

    def test_missing_secret_key(self):
        adapter = StripeAdapter(stripe_config(stripe_sk_live=""), exchange=FixedRates())
        with self.assertRaises(ConfigurationError):
            adapter.pay(ORDER)


class TestStripeIntentManagement(unittest.TestCase):
    def test_resolve_unknown_shape(self):
        self.assertIsNone(_adapter().resolve(object()))

    def test_get_payment_status(self):
        client = mock.MagicMock()
        client.v1.payment_intents.retrieve.return_value = SimpleNamespace(status="processing")
        self.assertEqual(_adapter(client).get_payment_status("pi_1"), "processing")

    def test_get_payment_status_error(self):
        client = mock.MagicMock()
        client.v1.payment_intents.retrieve.side_effect = stripe.InvalidRequestError("No such intent", "id")
        self.assertIsNone(_adapter(client).get_payment_status("pi_missing"))

    def test_cancel_payment(self):
        client = mock.MagicMock()
        client.v1.payment_intents.retrieve.return_value = SimpleNamespace(status="requires_payment_method")
        self.assertTrue(_adapter(client).cancel_payment("pi_1"))
        client.v1.payment_intents.cancel.assert_called_once_with("pi_1")

    def test_cancel_succeeded_payment_is_refused(self):
        client = mock.MagicMock()
        client.v1.payment_intents.retrieve.return_value = SimpleNamespace(status="succeeded")
        self.assertFalse(_adapter(client).cancel_payment("pi_1"))
        client.v1.payment_intents.cancel.assert_not_called()


if __name__ == "__main__":
    unittest.main()
