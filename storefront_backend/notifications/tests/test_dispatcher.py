import http.client
import json
import socket
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock
from urllib.error import URLError

from django.core import mail
from django.db import DatabaseError
from django.template import TemplateDoesNotExist
from django.test import TestCase
from django.utils import timezone

from notifications.services.dispatcher import OrderConfirmationNotifier, Recipient
from products.models import Product

URLOPEN = "notifications.services.dispatcher.urlopen"


def _order(items, **overrides):
    data = {
        "order_number": "ORD-20260101120000-ABCDEF123456",
        "items": items,
        "subtotal": Decimal("50.00"),
        "discount": Decimal("5.00"),
        "total": Decimal("45.00"),
        "currency": "usd",
    }
    data.update(overrides)
    return SimpleNamespace(**data)


class OrderConfirmationRenderTests(TestCase):
    def setUp(self):
        self.session = Product.objects.create(
            name="Live Workshop",
            price="30.00",
            is_live_session=True,
            session_starts_at=timezone.now() + timedelta(days=3),
            session_join_url="https://meet.example.com/workshop",
        )
        self.book = Product.objects.create(name="Guide", price="20.00")
        self.recipient = Recipient(email="jane@example.com", name="Jane Doe")

    def test_render_lists_items_totals_and_sessions(self):
        order = _order(
            [
                {"id": str(self.session.id), "name": "Live Workshop", "price": 30, "quantity": 1},
                {"id": str(self.book.id), "name": "Guide", "price": 20, "quantity": 1},
            ]
        )

        subject, html_body, text_body = OrderConfirmationNotifier().render(self.recipient, order)

        self.assertIn(order.order_number, subject)
        self.assertIn("Jane Doe", html_body)
        self.assertIn("Guide", text_body)
        self.assertIn("45.00", text_body)
        self.assertIn("https://meet.example.com/workshop", html_body)
        self.assertIn("Your live sessions", text_body)

    def test_no_sessions_section_without_live_products(self):
        order = _order([{"id": str(self.book.id), "name": "Guide", "price": 20, "quantity": 1}])

        _, _, text_body = OrderConfirmationNotifier().render(self.recipient, order)

        self.assertNotIn("Your live sessions", text_body)

    def test_blank_name_falls_back(self):
        self.assertEqual(Recipient(email="x@example.com").display_name, "Valued Customer")


class OrderConfirmationDeliveryTests(TestCase):
    """
    Delivery is best-effort: failures become sent=False, never exceptions.
    """

    def setUp(self):
        self.recipient = Recipient(email="jane@example.com", name="Jane")
        self.order = _order([{"id": "unknown", "name": "Thing", "price": 45, "quantity": 1}])

    def test_no_channel_logs_and_reports_sent(self):
        with mock.patch(URLOPEN) as urlopen:
            result = OrderConfirmationNotifier(channel="").send_order_confirmation(self.recipient, self.order)

        self.assertTrue(result.sent)
        urlopen.assert_not_called()
        self.assertEqual(len(mail.outbox), 0)

    def test_webhook_posts_payload_with_timeout(self):
        resp = mock.MagicMock()
        resp.read.return_value = b'{"id": "relay-1", "status": "success"}'
        resp.__enter__.return_value = resp

        notifier = OrderConfirmationNotifier(
            channel="webhook",
            webhook_url="https://hooks.example.com/relay",
            webhook_secret="s3cret",
            from_email="shop@example.com",
            timeout=10,
        )
        with mock.patch(URLOPEN, return_value=resp) as urlopen:
            result = notifier.send_order_confirmation(self.recipient, self.order)

        self.assertTrue(result.sent)
        self.assertEqual(result.message_id, "relay-1")

        req = urlopen.call_args.args[0]
        self.assertEqual(urlopen.call_args.kwargs["timeout"], 10)
        payload = json.loads(req.data)
        self.assertEqual(payload["to_email"], "jane@example.com")
        self.assertEqual(payload["from_email"], "shop@example.com")
        self.assertEqual(payload["secret"], "s3cret")
        self.assertIn("html_body", payload)
        self.assertIn("timestamp", payload)

    def test_webhook_timeout_reports_not_sent(self):
        notifier = OrderConfirmationNotifier(channel="webhook", webhook_url="https://hooks.example.com/relay")
        for error in (socket.timeout("timed out"), URLError("unreachable")):
            with mock.patch(URLOPEN, side_effect=error):
                result = notifier.send_order_confirmation(self.recipient, self.order)

            self.assertFalse(result.sent)
            self.assertTrue(result.error)

    def test_email_channel_uses_mail_backend(self):
        notifier = OrderConfirmationNotifier(channel="email", from_email="shop@example.com")

        result = notifier.send_order_confirmation(self.recipient, self.order)

        self.assertTrue(result.sent)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["jane@example.com"])
        self.assertIn(self.order.order_number, mail.outbox[0].subject)

    def test_email_failure_reports_not_sent(self):
        notifier = OrderConfirmationNotifier(channel="email")
        with mock.patch(
            "notifications.services.dispatcher.send_mail",
            side_effect=ConnectionRefusedError("smtp down"),
        ):
            result = notifier.send_order_confirmation(self.recipient, self.order)

        self.assertFalse(result.sent)
        self.assertIn("smtp down", result.error)

    def test_webhook_dropped_connection_reports_not_sent(self):
        notifier = OrderConfirmationNotifier(channel="webhook", webhook_url="https://hooks.example.com/relay")
        for error in (http.client.RemoteDisconnected("closed"), http.client.IncompleteRead(b"")):
            with mock.patch(URLOPEN, side_effect=error):
                result = notifier.send_order_confirmation(self.recipient, self.order)

            self.assertFalse(result.sent)
            self.assertEqual(result.channel, "webhook")

    def test_webhook_without_url_is_reported_not_sent(self):
        notifier = OrderConfirmationNotifier(channel="webhook", webhook_url="")
        with mock.patch(URLOPEN) as urlopen:
            with self.assertLogs("notifications.services.dispatcher", level="WARNING") as logs:
                result = notifier.send_order_confirmation(self.recipient, self.order)

        self.assertFalse(result.sent)
        self.assertEqual(result.error, "webhook url not configured")
        urlopen.assert_not_called()
        self.assertIn("WEBHOOK_URL", logs.output[0])
        self.assertIn(self.order.order_number, logs.output[0])

    def test_render_failure_is_reported_not_raised(self):
        notifier = OrderConfirmationNotifier(channel="email")
        with mock.patch(
            "notifications.services.dispatcher.render_to_string",
            side_effect=TemplateDoesNotExist("notifications/order_confirmation.html"),
        ):
            with self.assertLogs("notifications.services.dispatcher", level="ERROR"):
                result = notifier.send_order_confirmation(self.recipient, self.order)

        self.assertFalse(result.sent)
        self.assertIn("render failed", result.error)
        self.assertEqual(len(mail.outbox), 0)

    def test_catalog_error_during_render_is_reported_not_raised(self):
        notifier = OrderConfirmationNotifier(channel="")
        with mock.patch(
            "notifications.services.dispatcher.products_for_items",
            side_effect=DatabaseError("connection lost"),
        ):
            with self.assertLogs("notifications.services.dispatcher", level="ERROR"):
                result = notifier.send_order_confirmation(self.recipient, self.order)

        self.assertFalse(result.sent)
        self.assertIn("connection lost", result.error)
