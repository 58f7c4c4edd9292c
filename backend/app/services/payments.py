"""Razorpay adapter.

All gateway calls return a result object instead of raising, so handlers can
decide between failing the request and degrading to a fallback order. Without
credentials the adapter hands out mock orders, which keeps local development
and the test suite off the network.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import Any

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError
import requests

logger = logging.getLogger(__name__)

# Razorpay rejects receipts longer than this.
MAX_RECEIPT_LENGTH = 40

# Gateway errors that mean "unreachable", not "rejected".
FALLBACK_ERROR_MARKERS = ("502", "Unknown error")

_STATUS_DESCRIPTIONS = {
    "created": "Payment initiated",
    "authorized": "Payment authorized",
    "captured": "Payment completed",
    "refunded": "Payment refunded",
    "failed": "Payment failed",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def tournament_receipt(tournament_id: str, now_ms: int | None = None) -> str:
    """``trn_<8 chars of tournament id>_<last 6 digits of the ms clock>``."""
    stamp = str(now_ms if now_ms is not None else _now_ms())[-6:]
    return f"trn_{tournament_id[:8]}_{stamp}"[:MAX_RECEIPT_LENGTH]


def event_receipt(event_id: str, now_ms: int | None = None) -> str:
    stamp = str(now_ms if now_ms is not None else _now_ms())
    return f"event_{event_id}_{stamp}"[:MAX_RECEIPT_LENGTH]


def is_gateway_unavailable(error: str | None) -> bool:
    return bool(error) and any(marker in error for marker in FALLBACK_ERROR_MARKERS)


def fallback_order(
    *, amount: int, currency: str, receipt: str, notes: dict[str, str], key_id: str | None
) -> dict[str, Any]:
    """Synthetic order used when the gateway cannot be reached."""
    return {
        "id": f"fallback_{receipt}",
        "amount": amount,
        "currency": currency,
        "receipt": receipt,
        "status": "created",
        "key_id": key_id,
        "created_at": int(time.time()),
        "notes": {**notes, "fallback": "true", "reason": "razorpay_api_unavailable"},
    }


def format_amount(amount_in_paise: int) -> str:
    return f"{amount_in_paise / 100:.2f}"


def payment_status_description(status: str) -> str:
    return _STATUS_DESCRIPTIONS.get(status, status)


@dataclass
class OrderResult:
    success: bool
    order: dict[str, Any] | None = None
    error: str | None = None
    is_mock: bool = False


@dataclass
class PaymentResult:
    success: bool
    payment: dict[str, Any] | None = None
    error: str | None = None


@dataclass
class PaymentGateway:
    key_id: str | None = None
    key_secret: str | None = None
    public_key_id: str | None = None
    timeout: float = 10.0
    _client: Any = field(default=None, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings) -> "PaymentGateway":
        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            public_key_id=settings.RAZORPAY_PUBLIC_KEY_ID,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    @property
    def test_mode_allowed(self) -> bool:
        # Live keys never skip signature and capture checks.
        return not self.configured or (self.key_id or "").startswith("rzp_test_")

    @property
    def client(self):
        if self._client is None:
            self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
            self._client.set_app_details({"title": "EpicEsports India", "version": "0.1.0"})
        return self._client

    def create_order(
        self,
        *,
        amount: int,
        currency: str = "INR",
        receipt: str | None = None,
        notes: dict[str, str] | None = None,
    ) -> OrderResult:
        receipt = (receipt or f"receipt_{_now_ms()}")[:MAX_RECEIPT_LENGTH]
        notes = notes or {}

        if not self.configured:
            logger.warning("Razorpay credentials not found. Using mock payment order.")
            return OrderResult(
                success=True,
                order={
                    "id": f"order_mock_{_now_ms()}",
                    "amount": amount,
                    "currency": currency,
                    "receipt": receipt,
                    "status": "created",
                    "created_at": int(time.time()),
                    "notes": notes,
                },
                is_mock=True,
            )

        logger.info("Creating Razorpay order: amount=%s currency=%s receipt=%s", amount, currency, receipt)
        try:
            order = self.client.order.create(
                data={"amount": amount, "currency": currency, "receipt": receipt, "notes": notes},
                timeout=self.timeout,
            )
        except BadRequestError as exc:
            message = str(exc) or "Unknown error"
            if "Invalid key" in message or "Authentication failed" in message:
                message = "Invalid Razorpay API credentials. Please check RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            logger.error("Razorpay rejected order: %s", message)
            return OrderResult(success=False, error=message)
        except (ServerError, GatewayError) as exc:
            logger.error("Razorpay server error creating order: %s", exc)
            return OrderResult(success=False, error=str(exc) or "Unknown error")
        except requests.RequestException as exc:
            logger.error("Network error creating Razorpay order: %s", exc)
            return OrderResult(success=False, error=f"Network error connecting to Razorpay: {exc}")
        except ValueError:
            # Non-JSON body, e.g. an HTML 502 page from an upstream proxy.
            logger.exception("Unreadable response from Razorpay")
            return OrderResult(success=False, error="Unknown error")

        logger.info("Razorpay order created: id=%s status=%s", order.get("id"), order.get("status"))
        return OrderResult(success=True, order=order)

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.configured:
            logger.warning("Razorpay credentials not found. Cannot verify payment signature.")
            return False

        try:
            self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except SignatureVerificationError:
            logger.warning("Signature mismatch for order=%s payment=%s", order_id, payment_id)
            return False
        return True

    def fetch_payment(self, payment_id: str) -> PaymentResult:
        if not self.configured:
            logger.warning("Razorpay credentials not found. Cannot verify payment.")
            return PaymentResult(success=False, error="Razorpay not configured")

        try:
            payment = self.client.payment.fetch(payment_id, timeout=self.timeout)
        except (BadRequestError, ServerError, GatewayError) as exc:
            logger.error("Error fetching payment %s: %s", payment_id, exc)
            return PaymentResult(success=False, error=str(exc) or "Unknown error")
        except requests.RequestException as exc:
            logger.error("Network error fetching payment %s: %s", payment_id, exc)
            return PaymentResult(success=False, error=f"Network error connecting to Razorpay: {exc}")
        except ValueError:
            logger.exception("Unreadable response from Razorpay")
            return PaymentResult(success=False, error="Unknown error")

        return PaymentResult(success=True, payment=payment)
