"""Django ORM implementation of the catalog repository."""

from __future__ import annotations

from typing import Iterable, List, Optional

from django.core.exceptions import ValidationError

from modules.catalog.models import Item, OptionItem, ReformProposal
from modules.catalog.repositories.interfaces import ICatalogRepository


class CatalogDjangoRepository(ICatalogRepository):
    """Returns ``None`` / skips rows for unknown or malformed ids."""

    def get_by_id(self, id: str) -> Optional[Item]:
        try:
            return Item.objects.filter(id=id, is_active=True).first()
        except (ValueError, ValidationError):
            return None

    def get_option_items(self, ids: Iterable[str]) -> List[OptionItem]:
        ids = [str(i) for i in ids]
        if not ids:
            return []
        try:
            return list(
                OptionItem.objects.select_related("option_group")
                .filter(id__in=ids)
                .order_by("id")
            )
        except (ValueError, ValidationError):
            return []

    def get_proposal(self, id: str) -> Optional[ReformProposal]:
        try:
            return ReformProposal.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None
