"""Payment provider client (PortOne / iamport REST API).

Two calls are used:

- ``POST /users/getToken`` with the API key/secret returns an access token
  and its expiry.  The token is kept in the Django cache until one minute
  before it expires.
- ``GET /payments/{provider_transaction_id}`` returns the transaction.

Every provider body has the shape ``{"code": 0, "message": ..., "response": {...}}``;
a non-zero ``code`` is a permanent failure.

Lookups run under ``shared.infrastructure.retry.retry``: connection errors,
timeouts, HTTP 5xx and an expired token (HTTP 401) are retried with
exponential backoff; anything else fails immediately.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Protocol

import requests
import structlog
from django.conf import settings
from django.core.cache import cache

from modules.payments.exceptions import PaymentLookupFailed, VerificationTimeout
from shared.infrastructure.retry import RetryExhausted, retry

logger = structlog.get_logger(__name__)

TOKEN_CACHE_KEY = "payments:gateway:access_token"
TOKEN_EXPIRY_MARGIN_SECONDS = 60

PAID = "paid"


# ---------------------------------------------------------------------------
# Transaction snapshot
# ---------------------------------------------------------------------------


def mask_card_number(number: str) -> str:
    """Keep the first and last four digits: ``1234-****-****-3456``."""
    digits = "".join(ch for ch in number if ch.isdigit())
    if len(digits) < 8:
        return number
    return f"{digits[:4]}-****-****-{digits[-4:]}"


@dataclass(frozen=True)
class TransactionInfo:
    """Normalized provider transaction."""

    provider_transaction_id: str
    merchant_reference: str
    status: str
    amount: int
    pay_method: str = ""
    provider: str = ""
    card_name: str = ""
    card_number: str = ""
    card_quota: int = 0
    paid_at: Optional[int] = None

    @property
    def is_paid(self) -> bool:
        return self.status == PAID

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> TransactionInfo:
        return cls(
            provider_transaction_id=data.get("imp_uid") or "",
            merchant_reference=data.get("merchant_uid") or "",
            status=data.get("status") or "",
            amount=int(data.get("amount") or 0),
            pay_method=data.get("pay_method") or "",
            provider=data.get("pg_provider") or "",
            card_name=data.get("card_name") or "",
            card_number=mask_card_number(data.get("card_number") or ""),
            card_quota=int(data.get("card_quota") or 0),
            paid_at=data.get("paid_at") or None,
        )

    def to_detail(self) -> Dict[str, Any]:
        """Serialized form stored on the Receipt."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Errors and classification
# ---------------------------------------------------------------------------


class GatewayError(Exception):
    """Provider-level failure (non-zero ``code`` or rejected request)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, transient: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient


def is_transient(exc: BaseException) -> bool:
    """Network errors, timeouts and 5xx responses may succeed on retry."""
    if isinstance(exc, GatewayError):
        return exc.transient
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError):
        response = exc.response
        return response is not None and response.status_code >= 500
    return False


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class IPaymentGateway(Protocol):
    name: str

    def fetch_transaction(
        self, provider_transaction_id: str, max_delay: Optional[float] = None
    ) -> TransactionInfo: ...


class PortOneGateway:
    """``IPaymentGateway`` over the PortOne REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff: Optional[float] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.name = settings.PAYMENT_GATEWAY_NAME
        self._base_url = (base_url or settings.PAYMENT_GATEWAY_BASE_URL).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.PAYMENT_GATEWAY_API_KEY
        self._api_secret = (
            api_secret if api_secret is not None else settings.PAYMENT_GATEWAY_API_SECRET
        )
        self._timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT
        self._max_attempts = max_attempts or settings.PAYMENT_LOOKUP_MAX_ATTEMPTS
        self._backoff = (
            backoff if backoff is not None else settings.PAYMENT_LOOKUP_BACKOFF_SECONDS
        )
        self._session = session or requests.Session()
        self._sleep = sleep

    def fetch_transaction(
        self, provider_transaction_id: str, max_delay: Optional[float] = None
    ) -> TransactionInfo:
        """Fetch a transaction, retrying transient failures.

        Raises:
            VerificationTimeout: *max_delay* elapsed while still retrying.
            PaymentLookupFailed: retries exhausted (``retryable=True``) or a
                permanent failure (``retryable=False``).
        """
        log = logger.bind(provider_transaction_id=provider_transaction_id)
        try:
            transaction = retry(
                lambda: self._fetch_once(provider_transaction_id),
                max_attempts=self._max_attempts,
                is_retryable=is_transient,
                backoff=self._backoff,
                max_delay=max_delay,
                sleep=self._sleep,
            )
        except RetryExhausted as exc:
            log.warning(
                "gateway.lookup_failed",
                attempts=exc.attempts,
                exhausted=exc.exhausted,
                error=str(exc.last_error),
            )
            if exc.deadline_exceeded:
                raise VerificationTimeout(
                    f"Lookup of {provider_transaction_id} ran out of time."
                ) from exc
            raise PaymentLookupFailed(
                f"Lookup of {provider_transaction_id} failed: {exc.last_error}",
                retryable=exc.exhausted,
            ) from exc

        log.info(
            "gateway.transaction_fetched",
            status=transaction.status,
            amount=transaction.amount,
            merchant_reference=transaction.merchant_reference,
        )
        return transaction

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _fetch_once(self, provider_transaction_id: str) -> TransactionInfo:
        token = self._access_token()
        response = self._session.get(
            f"{self._base_url}/payments/{provider_transaction_id}",
            headers={"Authorization": f"Bearer {token}"},
            timeout=self._timeout,
        )
        if response.status_code == 401:
            cache.delete(TOKEN_CACHE_KEY)
            raise GatewayError("Access token rejected.", status_code=401, transient=True)
        response.raise_for_status()
        return TransactionInfo.from_response(self._unwrap(response))

    def _access_token(self) -> str:
        token = cache.get(TOKEN_CACHE_KEY)
        if token:
            return token

        response = self._session.post(
            f"{self._base_url}/users/getToken",
            json={"imp_key": self._api_key, "imp_secret": self._api_secret},
            timeout=self._timeout,
        )
        response.raise_for_status()
        data = self._unwrap(response)
        token = data["access_token"]
        ttl = int(data.get("expired_at") or 0) - int(time.time()) - TOKEN_EXPIRY_MARGIN_SECONDS
        if ttl > 0:
            cache.set(TOKEN_CACHE_KEY, token, timeout=ttl)
        logger.info("gateway.token_issued", ttl=ttl)
        return token

    @staticmethod
    def _unwrap(response: requests.Response) -> Dict[str, Any]:
        body = response.json()
        if body.get("code") != 0 or not body.get("response"):
            raise GatewayError(
                body.get("message") or "Unexpected provider response.",
                status_code=response.status_code,
            )
        return body["response"]


def get_payment_gateway() -> IPaymentGateway:
    return PortOneGateway()
