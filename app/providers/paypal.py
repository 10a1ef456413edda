
# app/providers/paypal.py
from __future__ import annotations

import base64
import binascii
import logging
import zlib
from typing import Mapping, Optional
from urllib.parse import urlparse

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from settings import settings
from app.providers.http import HttpClient

logger = logging.getLogger("partnerpay.paypal")

SUPPORTED_AUTH_ALGOS = {"SHA256withRSA"}


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name) or headers.get(name.lower())
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _allowed_cert_hosts() -> list[str]:
    return [h.strip().lower() for h in (settings.PAYPAL_CERT_HOSTS or "").split(",") if h.strip()]


def is_allowed_cert_url(cert_url: str) -> bool:
    parsed = urlparse(cert_url)
    if parsed.scheme != "https" or not parsed.hostname:
        return False
    host = parsed.hostname.lower()
    return any(host == h or host.endswith("." + h) for h in _allowed_cert_hosts())


def fetch_certificate(cert_url: str) -> bytes:
    with HttpClient(timeout_s=settings.PAYPAL_HTTP_TIMEOUT_S) as client:
        resp = client.get(cert_url)
    if not resp.ok:
        raise RuntimeError(f"PAYPAL_CERT_FETCH_FAILED: {resp.status_code}")
    return resp.text.encode("utf-8")


def expected_message(*, transmission_id: str, transmission_time: str, webhook_id: str, raw: bytes) -> bytes:
    """
    PayPal signs "<transmission id>|<transmission time>|<webhook id>|<crc32 of raw body>".
    """
    crc = zlib.crc32(raw) & 0xFFFFFFFF
    return f"{transmission_id}|{transmission_time}|{webhook_id}|{crc}".encode("utf-8")


def verify_webhook_signature(
    *,
    raw: bytes,
    headers: Mapping[str, str],
    webhook_id: Optional[str] = None,
) -> tuple[bool, str | None]:
    """
    Verify a PayPal webhook transmission against the raw, unparsed body.
    Returns (ok, error_code).
    """
    webhook_id = webhook_id if webhook_id is not None else settings.PAYPAL_WEBHOOK_ID
    if not webhook_id or not webhook_id.strip():
        return False, "WEBHOOK_ID_NOT_CONFIGURED"

    transmission_id = _header(headers, "paypal-transmission-id")
    transmission_time = _header(headers, "paypal-transmission-time")
    transmission_sig = _header(headers, "paypal-transmission-sig")
    cert_url = _header(headers, "paypal-cert-url")
    auth_algo = _header(headers, "paypal-auth-algo")

    if not (transmission_id and transmission_time and transmission_sig and cert_url):
        return False, "MISSING_SIGNATURE"

    if auth_algo and auth_algo not in SUPPORTED_AUTH_ALGOS:
        return False, "UNSUPPORTED_AUTH_ALGO"

    if not is_allowed_cert_url(cert_url):
        return False, "UNTRUSTED_CERT_URL"

    try:
        signature = base64.b64decode(transmission_sig, validate=True)
    except (binascii.Error, ValueError):
        return False, "INVALID_SIGNATURE"

    try:
        cert = x509.load_pem_x509_certificate(fetch_certificate(cert_url))
    except Exception as exc:
        logger.warning("paypal cert load failed url=%s err=%s", cert_url, exc)
        return False, "CERT_UNAVAILABLE"

    message = expected_message(
        transmission_id=transmission_id,
        transmission_time=transmission_time,
        webhook_id=webhook_id.strip(),
        raw=raw,
    )
    try:
        cert.public_key().verify(signature, message, padding.PKCS1v15(), hashes.SHA256())
    except (InvalidSignature, TypeError):
        # TypeError: non-RSA key in the certificate
        return False, "INVALID_SIGNATURE"

    return True, None
