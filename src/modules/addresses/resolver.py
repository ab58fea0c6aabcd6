"""Delivery address resolution for order sheets and checkout.

Resolution order:

1. ``address_id``: must exist and belong to the buyer.
2. ``new_address``: an ad-hoc address (``postal_code`` and ``address``
   required).  Persisted only when resolving inside a ``UnitOfWork``.
3. The buyer's default address.

If none applies the buyer has no usable address and
``InvalidDeliveryAddress`` is raised.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

import structlog
from django.core.exceptions import ValidationError

from modules.addresses.exceptions import InvalidDeliveryAddress
from modules.addresses.models import DeliveryAddress
from shared.infrastructure.uow import UnitOfWork

logger = structlog.get_logger(__name__)


class AddressResolver:
    def resolve(
        self,
        buyer_id: str,
        address_id: Optional[str] = None,
        new_address: Optional[Mapping[str, Any]] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> DeliveryAddress:
        """Return the delivery address for *buyer_id*.

        Without *uow* a new address is returned unsaved (order sheet
        preview); with an open *uow* it is inserted in that transaction.
        """
        if address_id:
            address = self._owned(buyer_id, address_id)
            if address is None:
                raise InvalidDeliveryAddress(
                    f"Address {address_id} does not exist for this buyer."
                )
            return address

        if new_address:
            postal_code = (new_address.get("postal_code") or "").strip()
            line = (new_address.get("address") or "").strip()
            if not postal_code or not line:
                raise InvalidDeliveryAddress("postal_code and address are required.")
            address = DeliveryAddress(
                buyer_id=buyer_id,
                recipient=new_address.get("recipient") or "",
                phone=new_address.get("phone") or "",
                postal_code=postal_code,
                address=line,
                address_detail=new_address.get("address_detail") or "",
            )
            if uow is not None:
                uow.ensure_active()
                address.save(using=uow.using)
                logger.info(
                    "address.created", buyer_id=buyer_id, address_id=str(address.id)
                )
            return address

        address = (
            DeliveryAddress.objects.filter(buyer_id=buyer_id, is_default=True)
            .order_by("-created_at")
            .first()
        )
        if address is None:
            raise InvalidDeliveryAddress("No delivery address was given and no default is set.")
        return address

    def _owned(self, buyer_id: str, address_id: str) -> Optional[DeliveryAddress]:
        try:
            return DeliveryAddress.objects.filter(id=address_id, buyer_id=buyer_id).first()
        except (ValueError, ValidationError):
            return None
