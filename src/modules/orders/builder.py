"""Order drafting: option validation and pricing.

``OrderBuilder`` turns a checkout request into an ``OrderDraft`` without
touching the database beyond reads.  Pricing::

    unit_price  = base price + sum(option extra prices)
    price       = unit_price * quantity
    delivery_fee = target delivery fee (added once per order, not per unit)

The same drafts feed the order sheet preview and the checkout, so both
always agree on amounts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import structlog

from modules.catalog.models import OptionItem
from modules.catalog.repositories.interfaces import ICatalogRepository
from modules.orders import targets
from modules.orders.constants import OrderTargetKind
from modules.orders.exceptions import InvalidOption, ItemNotFound
from modules.orders.targets import ItemTarget, OrderTarget, ReformTarget

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrderDraft:
    target: OrderTarget
    option_items: Tuple[OptionItem, ...]
    quantity: int
    buyer_id: str
    unit_price: int
    price: int
    delivery_fee: int

    @property
    def seller_id(self) -> str:
        return targets.seller_id(self.target)

    @property
    def target_kind(self) -> OrderTargetKind:
        return targets.target_kind(self.target)

    @property
    def target_id(self) -> str:
        return targets.target_id(self.target)

    @property
    def title(self) -> str:
        return targets.title(self.target)

    @property
    def option_labels(self) -> List[str]:
        return [option.label for option in self.option_items]


class OrderBuilder:
    def __init__(self, catalog_repository: ICatalogRepository) -> None:
        self._catalog = catalog_repository

    def resolve_target(self, kind: str, target_id: str) -> OrderTarget:
        """Load the item or reform proposal an order is placed against."""
        if kind == OrderTargetKind.ITEM:
            item = self._catalog.get_by_id(target_id)
            if item is None:
                raise ItemNotFound(f"Item {target_id} does not exist.")
            return ItemTarget(item=item)
        if kind == OrderTargetKind.REFORM:
            proposal = self._catalog.get_proposal(target_id)
            if proposal is None:
                raise ItemNotFound(f"Reform proposal {target_id} does not exist.")
            return ReformTarget(proposal=proposal)
        raise ItemNotFound(f"Unknown order target kind '{kind}'.")

    def build(
        self,
        target: OrderTarget,
        option_item_ids: Iterable[str],
        quantity: int,
        buyer_id: str,
        option_items: Optional[Iterable[OptionItem]] = None,
    ) -> OrderDraft:
        """Validate the option selection and price the order.

        *option_items* may be passed when the caller already loaded them
        (cart lines); otherwise they are read from the catalog.

        Raises:
            InvalidOption: unknown option, option of another item, two
                options from the same group, or options on a reform order.
        """
        requested = [str(i) for i in option_item_ids]
        if quantity < 1:
            raise InvalidOption("Quantity must be at least 1.")
        if len(set(requested)) != len(requested):
            raise InvalidOption("The same option was selected twice.")
        if requested and not targets.accepts_options(target):
            raise InvalidOption("Reform orders do not take options.")

        if option_items is None:
            options = self._catalog.get_option_items(requested)
        else:
            wanted = set(requested)
            options = [o for o in option_items if str(o.id) in wanted]
        found = {str(o.id) for o in options}
        missing = [i for i in requested if i not in found]
        if missing:
            raise InvalidOption(f"Option {missing[0]} does not exist.")

        self._check_ownership(target, options)

        unit_price = targets.unit_price(target) + sum(o.extra_price for o in options)
        draft = OrderDraft(
            target=target,
            option_items=tuple(sorted(options, key=lambda o: str(o.id))),
            quantity=quantity,
            buyer_id=buyer_id,
            unit_price=unit_price,
            price=unit_price * quantity,
            delivery_fee=targets.delivery_fee(target),
        )
        logger.debug(
            "order.drafted",
            target_kind=draft.target_kind,
            target_id=draft.target_id,
            quantity=quantity,
            price=draft.price,
        )
        return draft

    @staticmethod
    def _check_ownership(target: OrderTarget, options: List[OptionItem]) -> None:
        if not options:
            return
        if not isinstance(target, ItemTarget):
            raise InvalidOption("Reform orders do not take options.")
        groups_seen = set()
        for option in options:
            group = option.option_group
            if group.item_id != target.item.id:
                raise InvalidOption(
                    f"Option '{option.name}' does not belong to '{target.item.title}'."
                )
            if group.id in groups_seen:
                raise InvalidOption(
                    f"Only one option may be chosen from group '{group.name}'."
                )
            groups_seen.add(group.id)
