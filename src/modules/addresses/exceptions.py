"""Delivery address exceptions."""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import DomainError


class InvalidDeliveryAddress(DomainError):
    """No usable delivery address could be resolved for the buyer."""

    code = "INVALID-DELIVERY-ADDRESS"
    message = "Delivery address is invalid."
    status_code = status.HTTP_400_BAD_REQUEST
