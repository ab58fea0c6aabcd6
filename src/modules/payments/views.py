"""Payment API views.

- ``VerifyPaymentView``: the buyer's client reports a finished payment.
  Runs the full verification under ``VERIFY_TIMEOUT_SECONDS``.
- ``PaymentWebhookView``: provider notifications.  Unauthenticated but
  restricted to ``PAYMENT_WEBHOOK_ALLOWED_IPS``; the reconciliation itself
  runs in the ``payments.reconcile_webhook`` task.
"""

from __future__ import annotations

from typing import Optional

import structlog
from django.conf import settings
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.payments.dtos import VerifyPaymentDTO, WebhookDTO
from modules.payments.serializers import VerifyPaymentSerializer, WebhookSerializer
from modules.payments.tasks import build_reconciliation_service, reconcile_webhook

logger = structlog.get_logger(__name__)


def client_ip(request: Request) -> Optional[str]:
    """First ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the socket address."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.META.get("HTTP_X_REAL_IP")
    if real_ip:
        return real_ip.strip()
    return request.META.get("REMOTE_ADDR")


class VerifyPaymentView(APIView):
    throttle_scope = "payment_verify"

    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/verify/"""
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = VerifyPaymentDTO(buyer_id=str(request.user.pk), **serializer.validated_data)

        receipt = build_reconciliation_service().verify_payment(
            dto, max_delay=settings.VERIFY_TIMEOUT_SECONDS
        )
        return Response(receipt.model_dump(mode="json"))


class PaymentWebhookView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_scope = "payment_webhook"

    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/webhook/"""
        ip = client_ip(request)
        log = logger.bind(client_ip=ip)

        allowed = settings.PAYMENT_WEBHOOK_ALLOWED_IPS
        if allowed and ip not in allowed:
            log.warning("webhook.rejected_source")
            return Response({"status": "unauthorized"}, status=status.HTTP_403_FORBIDDEN)

        serializer = WebhookSerializer(data=request.data)
        if not serializer.is_valid():
            log.warning("webhook.invalid_request", errors=serializer.errors)
            return Response({"status": "invalid_request"}, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        dto = WebhookDTO(
            provider_transaction_id=data["imp_uid"],
            merchant_reference=data["merchant_uid"],
            status=data.get("status") or None,
        )
        log = log.bind(
            provider_transaction_id=dto.provider_transaction_id,
            merchant_reference=dto.merchant_reference,
            provider_status=dto.status,
        )

        try:
            reconcile_webhook.delay(dto.provider_transaction_id, dto.merchant_reference)
        except Exception:
            log.exception("webhook.dispatch_failed")
            return Response({"status": "error"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        log.info("webhook.accepted")
        return Response({"status": "ok"})
