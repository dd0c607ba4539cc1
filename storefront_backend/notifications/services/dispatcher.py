# notifications/services/dispatcher.py

"""
ORDER CONFIRMATION DISPATCHER (BEST-EFFORT)

send_order_confirmation(recipient, order) -> NotificationResult

Channels (settings.NOTIFICATIONS["CHANNEL"]):
- "webhook": POST JSON to an external relay
      {to_email, from_email, subject, html_body, timestamp, secret?}
- "email":   Django mail backend (EMAIL_URL)
- "":        log the rendered message and report sent=True (dev/degraded mode)

"webhook" without WEBHOOK_URL is a misconfiguration: warn, sent=False.

Rules:
- bounded timeout on every delivery (NOTIFICATIONS["TIMEOUT"], default 10s)
- render or delivery failure -> sent=False + log, never an exception to the caller
- live-session items get their start time + join link from the catalog
"""

from __future__ import annotations

import http.client
import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.conf import settings
from django.core.mail import send_mail
from django.db import DatabaseError
from django.template import TemplateDoesNotExist, TemplateSyntaxError
from django.template.loader import render_to_string
from django.utils import timezone

from products.services.catalog import products_for_items

logger = logging.getLogger(__name__)

CHANNEL_WEBHOOK = "webhook"
CHANNEL_EMAIL = "email"
CHANNEL_LOG = ""


@dataclass(frozen=True)
class Recipient:
    email: str
    name: str = ""

    @property
    def display_name(self) -> str:
        return (self.name or "").strip() or "Valued Customer"


@dataclass(frozen=True)
class NotificationResult:
    sent: bool
    channel: str = CHANNEL_LOG
    error: str = ""
    message_id: str = ""


def _notifications_cfg() -> dict:
    cfg = getattr(settings, "NOTIFICATIONS", {}) or {}
    return cfg if isinstance(cfg, dict) else {}


class OrderConfirmationNotifier:
    def __init__(
        self,
        *,
        channel: str = CHANNEL_LOG,
        webhook_url: str = "",
        webhook_secret: str = "",
        from_email: str = "",
        timeout: int = 10,
        using: str = "default",
    ):
        self.channel = (channel or "").strip().lower()
        self.webhook_url = (webhook_url or "").strip()
        self.webhook_secret = (webhook_secret or "").strip()
        self.from_email = from_email or getattr(settings, "DEFAULT_FROM_EMAIL", "")
        self.timeout = timeout
        self.using = using

    @classmethod
    def from_settings(cls, *, using: str = "default") -> "OrderConfirmationNotifier":
        cfg = _notifications_cfg()
        return cls(
            channel=cfg.get("CHANNEL") or "",
            webhook_url=cfg.get("WEBHOOK_URL") or "",
            webhook_secret=cfg.get("WEBHOOK_SECRET") or "",
            from_email=getattr(settings, "DEFAULT_FROM_EMAIL", ""),
            timeout=int(cfg.get("TIMEOUT") or 10),
            using=using,
        )

    # -----------------------------
    # Rendering
    # -----------------------------

    def build_context(self, recipient: Recipient, order) -> dict[str, Any]:
        items = list(getattr(order, "items", None) or [])
        products = products_for_items(items, using=self.using)

        lines = []
        sessions = []
        for item in items:
            lines.append(
                {
                    "name": item.get("name") or "Item",
                    "quantity": item.get("quantity") or 1,
                    "price": item.get("price"),
                }
            )
            product = products.get(str(item.get("id")))
            if product is not None and product.is_live_session:
                sessions.append(
                    {
                        "name": product.name,
                        "starts_at": product.session_starts_at,
                        "join_url": product.session_join_url,
                    }
                )

        return {
            "customer_name": recipient.display_name,
            "order_number": getattr(order, "order_number", ""),
            "lines": lines,
            "subtotal": getattr(order, "subtotal", None),
            "discount": getattr(order, "discount", None),
            "total": getattr(order, "total", None),
            "currency": (getattr(order, "currency", "") or "").upper(),
            "sessions": sessions,
        }

    def render(self, recipient: Recipient, order) -> tuple[str, str, str]:
        context = self.build_context(recipient, order)
        subject = f"Order Confirmation - {context['order_number']}"
        html_body = render_to_string("notifications/order_confirmation.html", context)
        text_body = render_to_string("notifications/order_confirmation.txt", context)
        return subject, html_body, text_body

    # -----------------------------
    # Delivery
    # -----------------------------

    def send_order_confirmation(self, recipient: Recipient, order) -> NotificationResult:
        order_number = getattr(order, "order_number", "")
        try:
            subject, html_body, text_body = self.render(recipient, order)
        except (TemplateDoesNotExist, TemplateSyntaxError, DatabaseError) as e:
            logger.exception(
                "Order confirmation could not be rendered: order=%s to=%s",
                order_number,
                recipient.email,
                extra={"order_number": order_number, "to": recipient.email},
            )
            return NotificationResult(sent=False, channel=self.channel, error=f"render failed: {e}")

        if self.channel == CHANNEL_WEBHOOK:
            if not self.webhook_url:
                logger.warning(
                    "Order confirmation not sent: webhook channel has no WEBHOOK_URL (order=%s to=%s)",
                    order_number,
                    recipient.email,
                    extra={"order_number": order_number, "to": recipient.email},
                )
                return NotificationResult(sent=False, channel=CHANNEL_WEBHOOK, error="webhook url not configured")
            result = self._send_webhook(recipient.email, subject, html_body)
        elif self.channel == CHANNEL_EMAIL:
            result = self._send_email(recipient.email, subject, text_body, html_body)
        else:
            logger.info(
                "EMAIL (not sent - no delivery channel configured)",
                extra={"to": recipient.email, "subject": subject, "preview": text_body[:200]},
            )
            return NotificationResult(sent=True, channel=CHANNEL_LOG)

        if result.sent:
            logger.info(
                "Order confirmation sent: order=%s channel=%s",
                order_number,
                result.channel,
                extra={"order_number": order_number, "to": recipient.email, "channel": result.channel},
            )
        else:
            logger.warning(
                "Order confirmation not sent: order=%s to=%s error=%s",
                order_number,
                recipient.email,
                result.error,
                extra={"order_number": order_number, "to": recipient.email, "error": result.error},
            )
        return result

    def _send_webhook(self, to_email: str, subject: str, html_body: str) -> NotificationResult:
        payload = {
            "to_email": to_email,
            "from_email": self.from_email,
            "subject": subject,
            "html_body": html_body,
            "timestamp": timezone.now().isoformat(),
        }
        if self.webhook_secret:
            payload["secret"] = self.webhook_secret

        req = Request(
            self.webhook_url,
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            method="POST",
        )

        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
        except HTTPError as e:
            return NotificationResult(sent=False, channel=CHANNEL_WEBHOOK, error=f"relay HTTP {e.code}")
        except URLError as e:
            return NotificationResult(sent=False, channel=CHANNEL_WEBHOOK, error=f"relay unreachable: {e.reason}")
        except (TimeoutError, OSError, http.client.HTTPException) as e:
            return NotificationResult(sent=False, channel=CHANNEL_WEBHOOK, error=f"relay timeout/IO error: {e}")

        try:
            body = json.loads(raw or "{}")
        except ValueError:
            body = {}
        message_id = str(body.get("id") or "") if isinstance(body, dict) else ""
        return NotificationResult(sent=True, channel=CHANNEL_WEBHOOK, message_id=message_id)

    def _send_email(self, to_email: str, subject: str, text_body: str, html_body: str) -> NotificationResult:
        try:
            send_mail(
                subject,
                text_body,
                self.from_email,
                [to_email],
                html_message=html_body,
                fail_silently=False,
            )
        except OSError as e:
            # smtplib errors and socket timeouts are OSError subclasses
            return NotificationResult(sent=False, channel=CHANNEL_EMAIL, error=str(e))
        return NotificationResult(sent=True, channel=CHANNEL_EMAIL)
