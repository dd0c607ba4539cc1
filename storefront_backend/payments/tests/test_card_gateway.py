import datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import stripe
from django.test import SimpleTestCase

from payments.services.card import (
    CardDetailsError,
    CardGateway,
    clean_card_number,
    configure_stripe_sdk,
    parse_expiry,
)
from payments.services.result import PaymentDeclined, PaymentErrorCategory, PaymentGatewayError, PaymentSuccess


def _fake_stripe(intent=None, intent_error=None):
    client = SimpleNamespace(
        PaymentIntent=mock.Mock(),
        PaymentMethod=mock.Mock(),
    )
    if intent_error is not None:
        client.PaymentIntent.create.side_effect = intent_error
    else:
        client.PaymentIntent.create.return_value = intent
    client.PaymentMethod.create.return_value = SimpleNamespace(id="pm_raw_123")
    return client


def _intent(status="succeeded", amount=1999, intent_id="pi_123"):
    return SimpleNamespace(
        id=intent_id,
        status=status,
        amount=amount,
        amount_received=amount if status == "succeeded" else 0,
        currency="usd",
        payment_method="pm_card_visa",
    )


class CardValidationTests(SimpleTestCase):
    """
    Raw card fields are validated locally before any network call.
    """

    today = datetime.date(2026, 6, 15)

    def test_expiry_parses_future_month(self):
        self.assertEqual(parse_expiry("12/27", today=self.today), (12, 2027))

    def test_expiry_current_month_is_still_valid(self):
        self.assertEqual(parse_expiry("06/26", today=self.today), (6, 2026))

    def test_expiry_in_past_is_rejected(self):
        with self.assertRaisesMessage(CardDetailsError, "Card has expired"):
            parse_expiry("05/26", today=self.today)

    def test_expiry_bad_format_is_rejected(self):
        for value in ("1227", "12/2027", "", None, "ab/cd"):
            with self.assertRaises(CardDetailsError):
                parse_expiry(value, today=self.today)

    def test_expiry_bad_month_is_rejected(self):
        with self.assertRaisesMessage(CardDetailsError, "Invalid expiry month"):
            parse_expiry("13/27", today=self.today)

    def test_card_number_strips_spaces(self):
        self.assertEqual(clean_card_number("4242 4242 4242 4242"), "4242424242424242")

    def test_short_card_number_is_rejected(self):
        with self.assertRaises(CardDetailsError):
            clean_card_number("4242 4242")


class CardGatewayChargeTests(SimpleTestCase):
    def test_tokenized_payment_method_success(self):
        client = _fake_stripe(intent=_intent())
        gateway = CardGateway(secret_key="sk_test_x", client=client)

        result = gateway.charge({"paymentMethodId": "pm_card_visa"}, Decimal("19.99"), idempotency_key="key-1")

        self.assertIsInstance(result, PaymentSuccess)
        self.assertTrue(result.ok)
        self.assertEqual(result.reference, "pi_123")
        self.assertEqual(result.amount, Decimal("19.99"))
        self.assertFalse(result.synthetic)

        kwargs = client.PaymentIntent.create.call_args.kwargs
        self.assertEqual(kwargs["amount"], 1999)
        self.assertEqual(kwargs["idempotency_key"], "key-1")
        self.assertTrue(kwargs["confirm"])
        self.assertEqual(kwargs["automatic_payment_methods"]["allow_redirects"], "never")
        client.PaymentMethod.create.assert_not_called()

    def test_non_succeeded_status_is_a_decline_with_status(self):
        client = _fake_stripe(intent=_intent(status="requires_action"))
        gateway = CardGateway(secret_key="sk_test_x", client=client)

        result = gateway.charge({"paymentMethodId": "pm_x"}, "10.00")

        self.assertIsInstance(result, PaymentDeclined)
        self.assertEqual(result.status, "requires_action")
        self.assertIn("requires_action", result.user_message)
        self.assertFalse(result.retryable)

    def test_raw_card_is_tokenized_then_charged(self):
        client = _fake_stripe(intent=_intent())
        gateway = CardGateway(secret_key="sk_test_x", client=client)

        result = gateway.charge(
            {"cardNumber": "4242 4242 4242 4242", "expiryDate": "12/99", "cvv": "123", "cardName": "Jane"},
            "19.99",
        )

        self.assertTrue(result.ok)
        card = client.PaymentMethod.create.call_args.kwargs["card"]
        self.assertEqual(card["number"], "4242424242424242")
        self.assertEqual(card["exp_year"], 2099)
        self.assertEqual(client.PaymentIntent.create.call_args.kwargs["payment_method"], "pm_raw_123")

    def test_malformed_raw_card_makes_no_network_call(self):
        client = _fake_stripe(intent=_intent())
        gateway = CardGateway(secret_key="sk_test_x", client=client)

        result = gateway.charge({"cardNumber": "4242", "expiryDate": "12/99"}, "19.99")

        self.assertIsInstance(result, PaymentGatewayError)
        self.assertEqual(result.category, PaymentErrorCategory.INVALID_PAYMENT_DETAILS)
        client.PaymentMethod.create.assert_not_called()
        client.PaymentIntent.create.assert_not_called()

    def test_invalid_amount_is_rejected_locally(self):
        client = _fake_stripe(intent=_intent())
        gateway = CardGateway(secret_key="sk_test_x", client=client)

        for amount in ("0", "-1", "19.999", "abc", None):
            result = gateway.charge({"paymentMethodId": "pm_x"}, amount)
            self.assertEqual(result.category, PaymentErrorCategory.INVALID_PAYMENT_DETAILS)

        client.PaymentIntent.create.assert_not_called()

    def test_sdk_errors_map_to_categories(self):
        cases = [
            (stripe.RateLimitError("slow down"), PaymentErrorCategory.RATE_LIMITED, True),
            (stripe.InvalidRequestError("bad param", "amount"), PaymentErrorCategory.INVALID_PAYMENT_DETAILS, False),
            (stripe.AuthenticationError("bad key"), PaymentErrorCategory.AUTHENTICATION_MISCONFIGURED, False),
            (stripe.APIConnectionError("network down"), PaymentErrorCategory.GATEWAY_UNAVAILABLE, True),
            (stripe.APIError("stripe 500"), PaymentErrorCategory.GATEWAY_UNAVAILABLE, True),
        ]
        for error, category, retryable in cases:
            gateway = CardGateway(secret_key="sk_test_x", client=_fake_stripe(intent_error=error))
            result = gateway.charge({"paymentMethodId": "pm_x"}, "5.00")

            self.assertIsInstance(result, PaymentGatewayError)
            self.assertEqual(result.category, category)
            self.assertEqual(result.retryable, retryable)
            self.assertTrue(result.user_message)

    def test_card_error_is_a_decline(self):
        error = stripe.CardError("Your card was declined.", None, "card_declined")
        gateway = CardGateway(secret_key="sk_test_x", client=_fake_stripe(intent_error=error))

        result = gateway.charge({"paymentMethodId": "pm_card_chargeDeclined"}, "5.00")

        self.assertIsInstance(result, PaymentDeclined)
        self.assertEqual(result.category, PaymentErrorCategory.CARD_DECLINED)
        self.assertFalse(result.retryable)


class CardGatewaySyntheticTests(SimpleTestCase):
    def test_missing_key_in_test_mode_is_synthetic_success(self):
        gateway = CardGateway(secret_key="", test_mode=True, client=_fake_stripe())

        first = gateway.charge({}, "19.99", idempotency_key="abc")
        second = gateway.charge({}, "19.99", idempotency_key="abc")

        self.assertTrue(first.ok)
        self.assertTrue(first.synthetic)
        self.assertTrue(first.reference.startswith("test_pi_"))
        self.assertEqual(first.reference, second.reference)

    def test_missing_key_outside_test_mode_is_misconfigured(self):
        gateway = CardGateway(secret_key="", test_mode=False, client=_fake_stripe())

        result = gateway.charge({}, "19.99")

        self.assertFalse(result.ok)
        self.assertEqual(result.category, PaymentErrorCategory.AUTHENTICATION_MISCONFIGURED)


class StripeSdkSetupTests(SimpleTestCase):
    def test_constructing_gateway_leaves_sdk_globals_alone(self):
        transport = object()
        with mock.patch.object(stripe, "max_network_retries", 3), mock.patch.object(
            stripe, "default_http_client", transport
        ):
            CardGateway(secret_key="sk_test_x", timeout=7)
            CardGateway.from_settings()

            self.assertEqual(stripe.max_network_retries, 3)
            self.assertIs(stripe.default_http_client, transport)

    def test_configure_sets_no_retries_and_bounded_timeout(self):
        with mock.patch.object(stripe, "max_network_retries", 3), mock.patch.object(
            stripe, "default_http_client", None
        ), mock.patch.object(stripe, "RequestsClient") as requests_client:
            configure_stripe_sdk(7)

            self.assertEqual(stripe.max_network_retries, 0)
            self.assertIs(stripe.default_http_client, requests_client.return_value)
        requests_client.assert_called_once_with(timeout=7)
