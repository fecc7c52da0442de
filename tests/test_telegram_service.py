import json
import unittest
from types import SimpleNamespace

import httpx

from subpanel.services.telegram_service import TelegramService, payment_received_message


class TestTelegramService(unittest.TestCase):
    def setUp(self):
        self.sent = []

    def _service(self, status_code=200, chat_ids=("100", "200"), bot_token="123:abc"):
        def handler(request):
            self.sent.append((str(request.url), json.loads(request.content)))
            return httpx.Response(status_code, json={"ok": status_code == 200})

        return TelegramService(
            bot_token=bot_token,
            chat_ids=list(chat_ids),
            api_base="https://telegram.test/",
            timeout=1.0,
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )

    def test_sends_to_every_admin(self):
        delivered = self._service().send_message_with_admin("hello")

        self.assertEqual(delivered, 2)
        self.assertEqual([body["chat_id"] for _, body in self.sent], ["100", "200"])
        url, body = self.sent[0]
        self.assertEqual(url, "https://telegram.test/bot123:abc/sendMessage")
        self.assertEqual(body["text"], "hello")
        self.assertEqual(body["parse_mode"], "markdown")

    def test_unconfigured_is_noop(self):
        self.assertEqual(self._service(bot_token="").send_message_with_admin("hello"), 0)
        self.assertEqual(self._service(chat_ids=()).send_message_with_admin("hello"), 0)
        self.assertEqual(self.sent, [])

    def test_failures_do_not_raise(self):
        self.assertEqual(self._service(status_code=500).send_message_with_admin("hello"), 0)
        self.assertEqual(len(self.sent), 2)

    def test_payment_message(self):
        order = SimpleNamespace(total_amount=1999, trade_no="202610170001")
        payment = SimpleNamespace(payment="Stripe", name="Stripe Cards")

        text = payment_received_message(order, payment)

        self.assertIn("19.99", text)
        self.assertIn("Stripe Cards", text)
        self.assertIn("`202610170001`", text)


if __name__ == "__main__":
    unittest.main()
