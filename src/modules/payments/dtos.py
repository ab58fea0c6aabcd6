"""Payment reconciliation DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class VerifyPaymentDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    buyer_id: str
    merchant_reference: str
    provider_transaction_id: str

    @field_validator("merchant_reference", "provider_transaction_id")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("This field may not be blank.")
        return v


class WebhookDTO(BaseModel):
    """Provider notification body (``imp_uid`` / ``merchant_uid`` / ``status``)."""

    model_config = ConfigDict(frozen=True)

    provider_transaction_id: str
    merchant_reference: str
    status: Optional[str] = None
