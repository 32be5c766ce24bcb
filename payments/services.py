from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import stripe
from django.conf import settings

from core.results import RefundFailed, UpstreamTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentIntentReceipt:
    intent_id: str
    client_secret: Optional[str]
    status: str


@dataclass(frozen=True)
class RefundReceipt:
    refund_id: str
    status: str


def _currency() -> str:
    return getattr(settings, "STRIPE_CURRENCY", "inr").lower()


def _money_minor_units(amount) -> int:
    q = Decimal(str(amount or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int((q * 100).to_integral_value())


def configure_stripe(timeout: Optional[float] = None) -> None:
    """Install the process-wide Stripe HTTP client: bounded timeout, one network retry."""
    timeout = timeout or float(getattr(settings, "PAYMENT_GATEWAY_TIMEOUT_SECONDS", 10))
    stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
    stripe.max_network_retries = 1


class StripePaymentGateway:
    """
    Payment gateway backed by Stripe.

    Calls go through the HTTP client installed by ``configure_stripe`` when the
    app loads. Refund errors surface as ``RefundFailed``; connection
    failures and payment intent errors surface as ``UpstreamTimeout``.
    """

    def __init__(self, api_key: Optional[str] = None, currency: Optional[str] = None):
        self.api_key = api_key if api_key is not None else getattr(settings, "STRIPE_SECRET_KEY", "")
        self.currency = (currency or _currency()).lower()

    def create_payment_intent(self, amount, reference: str) -> PaymentIntentReceipt:
        amount_minor = _money_minor_units(amount)
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount_minor,
                currency=self.currency,
                metadata={"order_number": reference},
                automatic_payment_methods={"enabled": True},
                idempotency_key=f"intent-{reference}",
            )
        except stripe.APIConnectionError as e:
            logger.warning("Stripe unreachable creating PaymentIntent for %s: %s", reference, e)
            raise UpstreamTimeout("Payment gateway did not respond in time") from e
        except stripe.StripeError as e:
            logger.error("Stripe error creating PaymentIntent for %s: %s", reference, e)
            raise UpstreamTimeout("Payment could not be started. Please try again.") from e

        logger.info("Created PaymentIntent %s for %s (%s %s)", intent.id, reference, amount, self.currency)
        return PaymentIntentReceipt(intent_id=intent.id, client_secret=intent.client_secret, status=intent.status)

    def refund(self, payment_reference: str, amount, reason: str = "") -> RefundReceipt:
        """Refund ``amount`` against the PaymentIntent ``payment_reference``."""
        amount_minor = _money_minor_units(amount)
        try:
            refund = stripe.Refund.create(
                api_key=self.api_key,
                payment_intent=payment_reference,
                amount=amount_minor,
                reason="requested_by_customer",
                metadata={"cancellation_reason": (reason or "")[:500]},
                idempotency_key=f"refund-{payment_reference}-{amount_minor}",
            )
        except stripe.APIConnectionError as e:
            logger.warning("Stripe unreachable refunding %s: %s", payment_reference, e)
            raise UpstreamTimeout("Payment gateway did not respond in time") from e
        except stripe.StripeError as e:
            logger.error("Stripe error refunding %s: %s", payment_reference, e)
            raise RefundFailed() from e

        if refund.status in ("failed", "canceled"):
            logger.error("Stripe refund %s for %s ended as %s", refund.id, payment_reference, refund.status)
            raise RefundFailed(details={"refund_id": refund.id, "status": refund.status})

        logger.info("Created refund %s for %s (%s %s)", refund.id, payment_reference, amount, self.currency)
        return RefundReceipt(refund_id=refund.id, status=refund.status)
