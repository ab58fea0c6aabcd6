"""Payment DRF serializers."""

from __future__ import annotations

from rest_framework import serializers


class VerifyPaymentSerializer(serializers.Serializer):
    merchant_reference = serializers.CharField(max_length=64)
    provider_transaction_id = serializers.CharField(max_length=100)


class WebhookSerializer(serializers.Serializer):
    """Provider notification body.  Field names are the provider's."""

    imp_uid = serializers.CharField(max_length=100)
    merchant_uid = serializers.CharField(max_length=64)
    status = serializers.CharField(max_length=20, required=False, allow_blank=True)
