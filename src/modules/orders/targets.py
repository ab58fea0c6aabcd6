"""What an order can be placed against.

An order targets either a catalog ``Item`` (with option items) or a
``ReformProposal`` (custom work, no options).  ``OrderTarget`` is a closed
union; every function here matches on it exhaustively so adding a new kind
fails type checking until each site handles it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union, assert_never

from modules.catalog.models import Item, ReformProposal
from modules.orders.constants import OrderTargetKind


@dataclass(frozen=True)
class ItemTarget:
    item: Item


@dataclass(frozen=True)
class ReformTarget:
    proposal: ReformProposal


OrderTarget = Union[ItemTarget, ReformTarget]


def target_kind(target: OrderTarget) -> OrderTargetKind:
    match target:
        case ItemTarget():
            return OrderTargetKind.ITEM
        case ReformTarget():
            return OrderTargetKind.REFORM
        case _:
            assert_never(target)


def target_id(target: OrderTarget) -> str:
    match target:
        case ItemTarget(item=item):
            return str(item.id)
        case ReformTarget(proposal=proposal):
            return str(proposal.id)
        case _:
            assert_never(target)


def unit_price(target: OrderTarget) -> int:
    match target:
        case ItemTarget(item=item):
            return item.base_price
        case ReformTarget(proposal=proposal):
            return proposal.price
        case _:
            assert_never(target)


def delivery_fee(target: OrderTarget) -> int:
    match target:
        case ItemTarget(item=item):
            return item.delivery_fee
        case ReformTarget(proposal=proposal):
            return proposal.delivery_fee
        case _:
            assert_never(target)


def seller_id(target: OrderTarget) -> str:
    match target:
        case ItemTarget(item=item):
            return item.seller_id
        case ReformTarget(proposal=proposal):
            return proposal.seller_id
        case _:
            assert_never(target)


def title(target: OrderTarget) -> str:
    match target:
        case ItemTarget(item=item):
            return item.title
        case ReformTarget(proposal=proposal):
            return proposal.title
        case _:
            assert_never(target)


def accepts_options(target: OrderTarget) -> bool:
    match target:
        case ItemTarget():
            return True
        case ReformTarget():
            return False
        case _:
            assert_never(target)
