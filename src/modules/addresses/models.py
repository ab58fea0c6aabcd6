"""Buyer delivery addresses."""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel


class DeliveryAddress(BaseModel):
    buyer_id = models.CharField(max_length=64, db_index=True)
    recipient = models.CharField(max_length=100, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    postal_code = models.CharField(max_length=10)
    address = models.CharField(max_length=255)
    address_detail = models.CharField(max_length=255, blank=True, default="")
    is_default = models.BooleanField(default=False)

    class Meta:
        db_table = "delivery_address"
        ordering = ["-is_default", "-created_at"]

    @property
    def full_address(self) -> str:
        return f"({self.postal_code}) {self.address} {self.address_detail}".strip()

    def __str__(self) -> str:
        return self.full_address
