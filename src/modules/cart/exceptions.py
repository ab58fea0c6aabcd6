"""Cart exceptions."""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import DomainError


class CartLineNotFound(DomainError):
    """A requested cart line does not exist or belongs to another buyer."""

    code = "CART-LINE-NOT-FOUND"
    message = "Cart line not found."
    status_code = status.HTTP_404_NOT_FOUND
