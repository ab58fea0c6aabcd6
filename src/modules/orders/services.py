"""Checkout service layer (Use Cases).

``CheckoutService`` turns a priced selection into persisted orders:

1. Draft and price every order (``OrderBuilder``), outside any transaction.
2. Open one ``UnitOfWork`` and, inside it:
   - find or create the Receipt for the merchant reference and lock its row,
   - replay the Receipt's orders if a concurrent checkout placed them first,
   - reserve stock for every option item (ids in sorted order),
   - resolve the delivery address,
   - create the orders and their option links,
   - clear the consumed cart lines.
3. Commit.  Any failure rolls back every step, reservations included.

Order sheets run step 1 plus read-only stock and address checks and hand
out a fresh merchant reference.

A checkout repeated with a merchant reference whose Receipt already has
orders returns those orders unchanged (``replayed=True``).
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

import structlog
from django.db.models import QuerySet

from modules.addresses.exceptions import InvalidDeliveryAddress
from modules.cart.exceptions import CartLineNotFound
from modules.orders.builder import OrderBuilder, OrderDraft
from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.dtos import (
    AddressOutputDTO,
    CheckoutResultDTO,
    OrderDetailDTO,
    OrderOutputDTO,
    OrderSheetOutputDTO,
    ReceiptOutputDTO,
    SheetLineDTO,
)
from modules.orders.exceptions import (
    EmptyCheckout,
    InsufficientStock,
    ItemNotFound,
    OrderNotFound,
    ReceiptClosed,
)
from modules.orders.targets import ItemTarget
from modules.payments.exceptions import PaymentAmountMismatch
from shared.infrastructure.uow import UnitOfWork

if TYPE_CHECKING:
    from modules.addresses.models import DeliveryAddress
    from modules.addresses.resolver import AddressResolver
    from modules.cart.models import CartLine
    from modules.cart.repositories.interfaces import ICartRepository
    from modules.catalog.repositories.interfaces import ICatalogRepository
    from modules.orders.dtos import (
        CartCheckoutDTO,
        CartSheetDTO,
        CheckoutDTO,
        OrderSheetDTO,
    )
    from modules.orders.models import Order, Receipt
    from modules.orders.receipts import ReceiptManager
    from modules.orders.repositories.interfaces import IOrderRepository, IReceiptRepository
    from modules.orders.stock import StockLedger

logger = structlog.get_logger(__name__)

# (draft, delivery fee charged on that order)
PricedLine = Tuple[OrderDraft, int]


def bundle_delivery_fees(drafts: Sequence[OrderDraft]) -> List[int]:
    """Charge only the highest delivery fee of a batch.

    The fee lands on the first order carrying it; every other order of the
    batch gets zero.
    """
    if not drafts:
        return []
    highest = max(d.delivery_fee for d in drafts)
    fees = [0] * len(drafts)
    fees[next(i for i, d in enumerate(drafts) if d.delivery_fee == highest)] = highest
    return fees


class CheckoutService:
    """Application service for checkout use-cases.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        receipt_repository: IReceiptRepository,
        order_repository: IOrderRepository,
        catalog_repository: ICatalogRepository,
        cart_repository: ICartRepository,
        address_resolver: AddressResolver,
        stock_ledger: StockLedger,
        receipt_manager: ReceiptManager,
    ) -> None:
        self._receipts = receipt_repository
        self._orders = order_repository
        self._catalog = catalog_repository
        self._cart = cart_repository
        self._addresses = address_resolver
        self._ledger = stock_ledger
        self._receipt_manager = receipt_manager
        self._builder = OrderBuilder(catalog_repository)

    # ------------------------------------------------------------------
    # Order sheets (read-only previews)
    # ------------------------------------------------------------------

    def prepare_order_sheet(self, dto: OrderSheetDTO) -> OrderSheetOutputDTO:
        target = self._builder.resolve_target(dto.target_kind, str(dto.target_id))
        draft = self._builder.build(target, dto.option_item_ids, dto.quantity, dto.buyer_id)
        return self._sheet(dto, [(draft, draft.delivery_fee)])

    def prepare_cart_sheet(self, dto: CartSheetDTO) -> OrderSheetOutputDTO:
        drafts = self._draft_cart(dto.buyer_id, dto.cart_line_ids)
        return self._sheet(dto, list(zip(drafts, bundle_delivery_fees(drafts))))

    def _sheet(self, dto: OrderSheetDTO | CartSheetDTO, lines: List[PricedLine]) -> OrderSheetOutputDTO:
        self._check_stock([draft for draft, _ in lines])
        address = self._preview_address(dto)
        product_amount = sum(draft.price for draft, _ in lines)
        delivery_fee = sum(fee for _, fee in lines)
        return OrderSheetOutputDTO(
            merchant_reference=self._receipt_manager.generate_merchant_reference(),
            lines=[
                SheetLineDTO.from_draft(draft).model_copy(update={"delivery_fee": fee})
                for draft, fee in lines
            ],
            product_amount=product_amount,
            delivery_fee=delivery_fee,
            total_amount=product_amount + delivery_fee,
            address=AddressOutputDTO.from_entity(address) if address else None,
        )

    def _preview_address(self, dto: OrderSheetDTO | CartSheetDTO) -> Optional[DeliveryAddress]:
        explicit = dto.delivery_address_id is not None or dto.new_address is not None
        try:
            return self._addresses.resolve(
                dto.buyer_id,
                address_id=str(dto.delivery_address_id) if dto.delivery_address_id else None,
                new_address=dto.new_address.model_dump() if dto.new_address else None,
            )
        except InvalidDeliveryAddress:
            if explicit:
                raise
            return None

    def _check_stock(self, drafts: Iterable[OrderDraft]) -> None:
        options = {}
        needed: Counter = Counter()
        for draft in drafts:
            for option in draft.option_items:
                options[option.id] = option
                needed[option.id] += draft.quantity
        for option_id, quantity in needed.items():
            option = options[option_id]
            if option.quantity is not None and option.quantity < quantity:
                raise InsufficientStock(
                    option_name=option.name, available=option.quantity, requested=quantity
                )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def checkout(self, dto: CheckoutDTO) -> CheckoutResultDTO:
        """Create one order for a single item or reform proposal.

        Raises:
            ItemNotFound, InvalidOption, InsufficientStock,
            InvalidDeliveryAddress, ReceiptClosed, PaymentAmountMismatch.
        """
        log = logger.bind(buyer_id=dto.buyer_id, merchant_reference=dto.merchant_reference)
        log.info("checkout.started", target_kind=dto.target_kind, target_id=str(dto.target_id))

        previous = self._replay(dto.merchant_reference, dto.buyer_id)
        if previous is not None:
            return previous

        target = self._builder.resolve_target(dto.target_kind, str(dto.target_id))
        draft = self._builder.build(target, dto.option_item_ids, dto.quantity, dto.buyer_id)

        with UnitOfWork() as uow:
            receipt, orders, replayed = self._place(
                uow, dto, [(draft, draft.delivery_fee)]
            )
            if replayed:
                return self._result(receipt, orders, replayed=True)
            if isinstance(target, ItemTarget):
                self._cart.delete_for_item(uow, dto.buyer_id, draft.target_id)

        log.info(
            "checkout.completed",
            receipt_id=str(receipt.id),
            total_amount=receipt.total_amount,
        )
        return self._result(receipt, orders)

    def checkout_cart(self, dto: CartCheckoutDTO) -> CheckoutResultDTO:
        """Create one order per cart line under a single shared Receipt.

        An order has exactly one target, so lines are not merged per seller.
        Only the highest delivery fee of the whole batch is charged, taken
        over lines rather than over sellers.

        Raises:
            CartLineNotFound, InvalidOption, InsufficientStock,
            InvalidDeliveryAddress, ReceiptClosed, PaymentAmountMismatch.
        """
        log = logger.bind(buyer_id=dto.buyer_id, merchant_reference=dto.merchant_reference)
        log.info("checkout.cart_started", line_count=len(dto.cart_line_ids))

        previous = self._replay(dto.merchant_reference, dto.buyer_id)
        if previous is not None:
            return previous

        drafts = self._draft_cart(dto.buyer_id, dto.cart_line_ids)
        lines = list(zip(drafts, bundle_delivery_fees(drafts)))

        with UnitOfWork() as uow:
            receipt, orders, replayed = self._place(uow, dto, lines)
            if replayed:
                return self._result(receipt, orders, replayed=True)
            self._cart.delete_lines(uow, dto.cart_line_ids)

        log.info(
            "checkout.cart_completed",
            receipt_id=str(receipt.id),
            order_count=len(orders),
            total_amount=receipt.total_amount,
        )
        return self._result(receipt, orders)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _draft_cart(self, buyer_id: str, line_ids: Sequence) -> List[OrderDraft]:
        if not line_ids:
            raise EmptyCheckout()
        lines: List[CartLine] = self._cart.get_lines(buyer_id, line_ids)
        found = {str(line.id) for line in lines}
        missing = [str(i) for i in line_ids if str(i) not in found]
        if missing:
            raise CartLineNotFound(f"Cart line {missing[0]} does not exist.")

        drafts = []
        for line in lines:
            if not line.item.is_active:
                raise ItemNotFound(f"Item {line.item_id} is no longer available.")
            chosen = [cart_option.option_item for cart_option in line.options.all()]
            drafts.append(
                self._builder.build(
                    ItemTarget(item=line.item),
                    [str(option.id) for option in chosen],
                    line.quantity,
                    buyer_id,
                    option_items=chosen,
                )
            )
        return drafts

    def _replay(self, merchant_reference: str, buyer_id: str) -> Optional[CheckoutResultDTO]:
        receipt = self._receipts.get_by_reference(merchant_reference)
        if receipt is None:
            return None
        orders = self._orders.list_for_receipt(str(receipt.id))
        if not orders:
            if receipt.payment_status == PaymentStatus.CANCELLED:
                raise ReceiptClosed(f"Receipt {merchant_reference} was cancelled.")
            return None
        self._check_replay(receipt, orders, buyer_id)
        return self._result(receipt, orders, replayed=True)

    @staticmethod
    def _check_replay(receipt: Receipt, orders: List[Order], buyer_id: str) -> None:
        if receipt.payment_status == PaymentStatus.CANCELLED:
            raise ReceiptClosed(f"Receipt {receipt.merchant_reference} was cancelled.")
        if any(order.buyer_id != buyer_id for order in orders):
            raise ReceiptClosed(
                f"Merchant reference {receipt.merchant_reference} is already in use."
            )
        logger.info(
            "checkout.idempotency_hit",
            merchant_reference=receipt.merchant_reference,
            receipt_id=str(receipt.id),
        )

    def _place(
        self,
        uow: UnitOfWork,
        dto: CheckoutDTO | CartCheckoutDTO,
        lines: List[PricedLine],
    ) -> Tuple[Receipt, List[Order], bool]:
        """Write the orders of *lines* under the receipt of ``dto.merchant_reference``.

        The receipt row stays locked until commit.  When another checkout
        already placed orders on it, nothing is reserved or written and those
        orders come back with ``True`` as the replay flag.
        """
        total = sum(draft.price + fee for draft, fee in lines)
        receipt = self._receipt_manager.find_or_create(
            uow, dto.merchant_reference, total, refresh_total=False
        )
        receipt = self._receipts.lock(uow, str(receipt.id))
        existing = self._orders.list_for_receipt(str(receipt.id))
        if existing:
            self._check_replay(receipt, existing, dto.buyer_id)
            return receipt, existing, True

        status = self._initial_status(receipt, total)
        self._receipts.update_total(uow, receipt, total)

        self._reserve(uow, [draft for draft, _ in lines])
        address = self._addresses.resolve(
            dto.buyer_id,
            address_id=str(dto.delivery_address_id) if dto.delivery_address_id else None,
            new_address=dto.new_address.model_dump() if dto.new_address else None,
            uow=uow,
        )
        orders = [
            self._orders.create(uow, receipt, draft, fee, address, status)
            for draft, fee in lines
        ]
        return receipt, orders, False

    def _reserve(self, uow: UnitOfWork, drafts: Iterable[OrderDraft]) -> None:
        needed: Counter = Counter()
        for draft in drafts:
            for option in draft.option_items:
                needed[str(option.id)] += draft.quantity
        for option_id in sorted(needed):
            self._ledger.reserve(uow, option_id, needed[option_id])

    @staticmethod
    def _initial_status(receipt: Receipt, total: int) -> str:
        """Orders start ``PENDING`` unless the payment already settled the receipt."""
        if receipt.payment_status == PaymentStatus.CANCELLED:
            raise ReceiptClosed(f"Receipt {receipt.merchant_reference} was cancelled.")
        if receipt.payment_status != PaymentStatus.PAID:
            return OrderStatus.PENDING
        paid = (receipt.transaction or {}).get("amount")
        if paid != total:
            raise PaymentAmountMismatch(expected=total, actual=paid)
        return OrderStatus.PAID

    @staticmethod
    def _result(
        receipt: Receipt, orders: List[Order], replayed: bool = False
    ) -> CheckoutResultDTO:
        return CheckoutResultDTO(
            receipt=ReceiptOutputDTO.from_entity(receipt),
            orders=[OrderOutputDTO.from_entity(order) for order in orders],
            replayed=replayed,
        )


class OrderQueryService:
    """Read side: buyer order listing and detail."""

    def __init__(self, order_repository: IOrderRepository) -> None:
        self._orders = order_repository

    def list_orders(self, buyer_id: str) -> QuerySet:
        return self._orders.for_buyer(buyer_id)

    def get_order(self, buyer_id: str, lookup: str) -> OrderDetailDTO:
        """Fetch the buyer's own order by id, order number or merchant reference."""
        order = self._orders.find_for_buyer(buyer_id, lookup)
        if order is None:
            raise OrderNotFound(f"Order {lookup} not found.")
        return OrderDetailDTO.from_entity(order)
