"""Django ORM implementation of the cart repository."""

from __future__ import annotations

from typing import Iterable, List

import structlog
from django.core.exceptions import ValidationError

from modules.cart.models import CartLine
from modules.cart.repositories.interfaces import ICartRepository
from shared.infrastructure.uow import UnitOfWork

logger = structlog.get_logger(__name__)


class CartDjangoRepository(ICartRepository):
    def get_lines(self, buyer_id: str, line_ids: Iterable[str]) -> List[CartLine]:
        ids = [str(i) for i in line_ids]
        if not ids:
            return []
        try:
            return list(
                CartLine.objects.select_related("item")
                .prefetch_related("options__option_item__option_group")
                .filter(buyer_id=buyer_id, id__in=ids)
                .order_by("created_at")
            )
        except (ValueError, ValidationError):
            return []

    def delete_lines(self, uow: UnitOfWork, line_ids: Iterable[str]) -> int:
        uow.ensure_active()
        _, per_model = (
            CartLine.objects.using(uow.using).filter(id__in=[str(i) for i in line_ids]).delete()
        )
        deleted = per_model.get("cart.CartLine", 0)
        logger.info("cart.lines_cleared", count=deleted)
        return deleted

    def delete_for_item(self, uow: UnitOfWork, buyer_id: str, item_id: str) -> int:
        uow.ensure_active()
        _, per_model = (
            CartLine.objects.using(uow.using).filter(buyer_id=buyer_id, item_id=item_id).delete()
        )
        deleted = per_model.get("cart.CartLine", 0)
        if deleted:
            logger.info("cart.item_cleared", buyer_id=buyer_id, item_id=str(item_id))
        return deleted
