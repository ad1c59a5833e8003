"""
PayMongo REST client (GCash sources and payments) and webhook signature check.

Sources are created with the public key, payments and lookups with the secret
key, both as HTTP basic auth with an empty password. Amounts are sent in
centavos.
"""
import hashlib
import hmac
from typing import Optional

import httpx
import structlog

from shared.config import settings
from shared.errors import InvalidSignatureError, PaymentGatewayError

logger = structlog.get_logger(__name__)


def to_centavos(amount: float) -> int:
    return int(round(float(amount) * 100))


class PaymongoClient:

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        public_key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.PAYMONGO_API_BASE).rstrip("/")
        self.secret_key = settings.PAYMONGO_SECRET_KEY if secret_key is None else secret_key
        self.public_key = settings.PAYMONGO_PUBLIC_KEY if public_key is None else public_key
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, endpoint: str, payload: Optional[dict] = None, use_secret: bool = True) -> dict:
        key = self.secret_key if use_secret else self.public_key
        if not key:
            raise PaymentGatewayError("PayMongo API key is not configured")

        try:
            async with httpx.AsyncClient(auth=(key, ""), timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(
                    method,
                    f"{self.base_url}{endpoint}",
                    json={"data": payload} if payload is not None else None,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error("paymongo_unreachable", endpoint=endpoint, error=str(e))
            raise PaymentGatewayError(f"PayMongo request failed: {e}")

        try:
            body = resp.json()
        except ValueError:
            body = {}

        if resp.is_error:
            errors = body.get("errors") or [{}]
            detail = errors[0].get("detail") or errors[0].get("message") or "PayMongo API error"
            logger.error("paymongo_error", endpoint=endpoint, status_code=resp.status_code, error=detail)
            raise PaymentGatewayError(detail)

        return body.get("data") or {}

    async def create_gcash_source(
        self,
        amount: float,
        redirect_success: str,
        redirect_failed: str,
        metadata: Optional[dict] = None,
        currency: str = "PHP",
    ) -> dict:
        if amount <= 0:
            raise PaymentGatewayError("Amount must be greater than 0")
        return await self._request(
            "POST",
            "/sources",
            {
                "type": "source",
                "attributes": {
                    "type": "gcash",
                    "amount": to_centavos(amount),
                    "currency": currency.upper(),
                    "redirect": {"success": redirect_success, "failed": redirect_failed},
                    "metadata": metadata or {},
                },
            },
            use_secret=False,
        )

    async def create_payment(
        self,
        source_id: str,
        amount: float,
        description: str = "Order payment",
        metadata: Optional[dict] = None,
        currency: str = "PHP",
    ) -> dict:
        return await self._request(
            "POST",
            "/payments",
            {
                "type": "payment",
                "attributes": {
                    "amount": to_centavos(amount),
                    "currency": currency.upper(),
                    "description": description,
                    "source": {"id": source_id, "type": "source"},
                    "metadata": metadata or {},
                },
            },
        )

    async def get_source(self, source_id: str) -> dict:
        return await self._request("GET", f"/sources/{source_id}", use_secret=False)

    async def get_payment(self, payment_id: str) -> dict:
        return await self._request("GET", f"/payments/{payment_id}")


def _parse_signature_header(header: str) -> dict:
    parts = {}
    for chunk in header.split(","):
        key, sep, value = chunk.strip().partition("=")
        if sep:
            parts[key] = value
    return parts


def compute_signature(timestamp: str, raw_body: bytes, secret: str) -> str:
    message = timestamp.encode() + b"." + raw_body
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_webhook_signature(raw_body: bytes, header: Optional[str], secret: Optional[str] = None) -> None:
    """
    Header format: ``t=<timestamp>,te=<test signature>,li=<live signature>``.
    Raises InvalidSignatureError on mismatch. Without a configured secret the
    check is skipped.
    """
    if secret is None:
        secret = settings.PAYMONGO_WEBHOOK_SECRET
    if not secret:
        logger.warning("webhook_signature_unverified", reason="PAYMONGO_WEBHOOK_SECRET not configured")
        return

    parts = _parse_signature_header(header or "")
    timestamp = parts.get("t")
    candidates = [parts[k] for k in ("te", "li") if parts.get(k)]
    if not timestamp or not candidates:
        raise InvalidSignatureError()

    expected = compute_signature(timestamp, raw_body, secret)
    if not any(hmac.compare_digest(expected, candidate) for candidate in candidates):
        raise InvalidSignatureError()


def get_gateway() -> PaymongoClient:
    return PaymongoClient()
