
# app/providers/stripe_api.py
from __future__ import annotations

from typing import Any, Dict, Optional, Sequence
import logging
import requests

from settings import settings


logger = logging.getLogger("partnerpay.stripe")


class StripeError(Exception):
    def __init__(self, message: str, *, http_status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.http_status = http_status
        self.code = code


class StripeClient:
    """
    Minimal Stripe REST adapter (form-encoded requests, Basic auth with the secret key):
      - retrieve_payment_method(id) -> payment method dict
      - create_payment_intent(...) -> payment intent dict
    """

    def __init__(self, secret_key: Optional[str] = None, api_base: Optional[str] = None):
        self.secret_key = (secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY or "").strip()
        self.api_base = (api_base or settings.STRIPE_API_BASE).strip().rstrip("/")
        self.timeout_s = float(settings.STRIPE_HTTP_TIMEOUT_S)

    def _auth(self):
        if not self.secret_key:
            raise StripeError("STRIPE_SECRET_KEY_NOT_SET")
        return (self.secret_key, "")

    def _handle(self, resp: requests.Response) -> Dict[str, Any]:
        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if 200 <= resp.status_code < 300 and isinstance(payload, dict):
            return payload

        err = (payload or {}).get("error") if isinstance(payload, dict) else None
        message = (err or {}).get("message") or f"Stripe request failed ({resp.status_code})"
        code = (err or {}).get("code")
        raise StripeError(message, http_status=resp.status_code, code=code)

    def retrieve_payment_method(self, payment_method_id: str) -> Dict[str, Any]:
        url = f"{self.api_base}/v1/payment_methods/{payment_method_id}"
        try:
            resp = requests.get(url, auth=self._auth(), timeout=self.timeout_s)
        except requests.RequestException as e:
            logger.warning("stripe payment method lookup error pm=%s err=%s", payment_method_id, e)
            raise StripeError(f"STRIPE_UNREACHABLE: {type(e).__name__}") from e
        return self._handle(resp)

    def create_payment_intent(
        self,
        *,
        amount: int,
        customer: str,
        payment_method: str,
        payment_method_types: Sequence[str],
        transfer_group: str,
        description: str,
        currency: str = "usd",
    ) -> Dict[str, Any]:
        url = f"{self.api_base}/v1/payment_intents"
        data: list[tuple[str, Any]] = [
            ("amount", int(amount)),
            ("currency", currency),
            ("customer", customer),
            ("payment_method", payment_method),
            ("confirmation_method", "automatic"),
            ("confirm", "true"),
            ("transfer_group", transfer_group),
            ("description", description),
        ]
        data.extend(("payment_method_types[]", t) for t in payment_method_types)

        try:
            resp = requests.post(
                url,
                auth=self._auth(),
                data=data,
                headers={"Idempotency-Key": f"payout-invoice-{transfer_group}"},
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            logger.warning("stripe payment intent error transfer_group=%s err=%s", transfer_group, e)
            raise StripeError(f"STRIPE_UNREACHABLE: {type(e).__name__}") from e

        intent = self._handle(resp)
        logger.info(
            "stripe payment intent created id=%s status=%s transfer_group=%s amount=%s",
            intent.get("id"),
            intent.get("status"),
            transfer_group,
            amount,
        )
        return intent


def get_stripe_client() -> StripeClient:
    return StripeClient()
