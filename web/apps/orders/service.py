"""Order lifecycle service.

``OrderService`` is the entry point callers (an HTTP layer, a worker, a
management command) use to create, read and move orders through their
lifecycle. It owns:

- input validation (pydantic schemas mapped to ``OrderValidationError``),
- the status state machine (``ALLOWED_TRANSITIONS``),
- the compensating stock restoration when an order is cancelled,
- the transaction boundary: every mutation runs as one atomic unit
  through the injected ``TransactionPort``.

Role checks are delegated to :mod:`apps.orders.policy`.
"""

import logging
from typing import List, Optional, Sequence, Union
from uuid import UUID

from pydantic import ValidationError

from . import policy
from .domain import (
    CANCELLABLE_STATUSES,
    CatalogPort,
    Order,
    OrderItem,
    OrderRepositoryPort,
    OrderStats,
    OrderStatus,
    Page,
    TransactionPort,
    can_transition,
)
from .errors import (
    AccessDeniedError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderValidationError,
)
from .policy import Actor, Role
from .reservation import StockReservation
from .schemas import CreateOrderDTO, OrderFilterDTO, UpdateOrderStatusDTO

logger = logging.getLogger("orders")


def _validate(schema: type, data):
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise OrderValidationError(e.errors(include_url=False, include_context=False), str(e)) from e


def _as_uuid(value, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise OrderValidationError(message=f"Invalid {field}: {value!r}") from e


def _as_actor(actor) -> Optional[Actor]:
    if actor is None or isinstance(actor, Actor):
        return actor
    try:
        return Actor.model_validate(actor)
    except ValidationError as e:
        raise OrderValidationError(e.errors(include_url=False, include_context=False), "Invalid caller") from e


class OrderService:
    """Domain service responsible for the order lifecycle.

    Transitions (current -> allowed next):

    - PENDING -> CONFIRMED, CANCELLED
    - CONFIRMED -> SHIPPED, CANCELLED
    - SHIPPED -> DELIVERED
    - DELIVERED, CANCELLED: terminal
    """

    def __init__(self, catalog: CatalogPort, orders: OrderRepositoryPort, transactions: TransactionPort):
        """Initialize the service with required dependencies.

        Args:
            catalog: CatalogPort used for prices and stock.
            orders: OrderRepositoryPort used to persist orders.
            transactions: TransactionPort wrapping each mutation.
        """
        self.catalog = catalog
        self.orders = orders
        self.transactions = transactions
        self.reservation = StockReservation(catalog)

    # ---- Commands ----
    def create_order(self, user_id, items: Sequence, shipping_address: str, notes: Optional[str] = None) -> Order:
        """Reserve stock and persist a new PENDING order atomically.

        Args:
            user_id: Owner of the new order.
            items: Line items as dicts (``product_id``/``productId`` and
                ``quantity``) or ``OrderItemIn`` instances.
            shipping_address: Delivery address, 1-500 characters.
            notes: Optional notes, at most 500 characters.

        Returns:
            Order: The persisted order, re-read with items and product
            references.

        Raises:
            OrderValidationError: On malformed input.
            ProductNotFoundError: If a product does not exist.
            InsufficientStockError: If a product can not cover its line.
            PersistenceError: On unexpected database failures.
        """
        dto = _validate(
            CreateOrderDTO,
            {"items": list(items or []), "shipping_address": shipping_address, "notes": notes},
        )
        owner = _as_uuid(user_id, "user_id")

        def unit_of_work() -> Order:
            reservation = self.reservation.reserve([(it.product_id, it.quantity) for it in dto.items])
            order = Order(
                id=None,
                user_id=owner,
                items=[
                    OrderItem(product_id=line.product_id, quantity=line.quantity, unit_price=line.unit_price)
                    for line in reservation.lines
                ],
                shipping_address=dto.shipping_address,
                status=OrderStatus.PENDING,
                total_amount=reservation.total,
                notes=dto.notes,
            )
            order_id = self.orders.create(order)
            return self.orders.get(order_id)

        order = self.transactions.run(unit_of_work)
        logger.info(
            "order created",
            extra={
                "order_id": str(order.id),
                "user_id": str(order.user_id),
                "total_amount": str(order.total_amount),
                "items": len(order.items),
            },
        )
        return order

    def update_status(self, order_id, new_status: Union[OrderStatus, str], actor) -> Order:
        """Move an order to ``new_status`` (admins only).

        A move to CANCELLED gives the order's stock back, exactly like
        :meth:`cancel_order`.

        Raises:
            ForbiddenError: If the caller is not an admin.
            OrderValidationError: If ``new_status`` is not a status.
            OrderNotFoundError: If the order does not exist.
            InvalidTransitionError: If the move is not in the table.
        """
        actor = _as_actor(actor)
        if not policy.can_mutate_status(actor):
            raise ForbiddenError("Only administrators can update order status")
        target = _validate(UpdateOrderStatusDTO, {"status": new_status}).status

        def unit_of_work() -> Order:
            order = self.orders.get(order_id, for_update=True)
            if order is None:
                raise OrderNotFoundError(order_id)
            if not can_transition(order.status, target):
                raise InvalidTransitionError(order.status, target)
            if target == OrderStatus.CANCELLED:
                self._restore_stock(order)
            if not self.orders.set_status(order.id, target, expected=order.status):
                current = self.orders.get(order.id)
                raise InvalidTransitionError(current.status if current else order.status, target)
            return self.orders.get(order.id)

        order = self.transactions.run(unit_of_work)
        logger.info(
            "order status updated",
            extra={"order_id": str(order.id), "status": order.status.value, "actor_id": str(actor.user_id)},
        )
        return order

    def cancel_order(self, order_id, actor) -> Order:
        """Cancel a PENDING or CONFIRMED order and restore its stock.

        Visibility, ownership and state are checked inside the
        transaction with the order row locked, so two concurrent cancels
        can not both restore stock.

        Raises:
            OrderNotFoundError: If the order does not exist.
            AccessDeniedError: If a customer does not own the order.
            ForbiddenError: If the caller may not cancel it.
            InvalidStateError: If the order is past CONFIRMED or already
                cancelled.
            ProductNotFoundError: If a product to restore is gone; the
                whole cancellation is rolled back.
        """
        actor = _as_actor(actor)

        def unit_of_work() -> Order:
            order = self._load_visible(order_id, actor, for_update=True)
            if not policy.can_cancel(order, actor):
                raise ForbiddenError("You can only cancel your own orders")
            if order.status not in CANCELLABLE_STATUSES:
                raise InvalidStateError(order.status)
            self._restore_stock(order)
            if not self.orders.set_status(order.id, OrderStatus.CANCELLED, expected=order.status):
                raise InvalidStateError(OrderStatus.CANCELLED)
            return self.orders.get(order.id)

        order = self.transactions.run(unit_of_work)
        logger.info(
            "order cancelled",
            extra={"order_id": str(order.id), "actor_id": str(actor.user_id) if actor else None},
        )
        return order

    # ---- Queries ----
    def get_order(self, order_id, actor=None) -> Order:
        """Return the hydrated order if the caller may see it.

        Raises:
            OrderNotFoundError: If the order does not exist.
            AccessDeniedError: If a customer does not own the order.
        """
        actor = _as_actor(actor)
        return self.transactions.read(lambda: self._load_visible(order_id, actor))

    def list_orders(self, filters=None, actor=None) -> Page:
        """Return one page of orders visible to the caller.

        Customers are always restricted to their own orders, whatever the
        filter says. Admins and internal callers (no actor) see all.
        """
        dto = _validate(OrderFilterDTO, filters or {})
        scope = policy.ownership_scope(_as_actor(actor))
        return self.transactions.read(lambda: self.orders.find_with_filters(dto, user_id=scope))

    def get_user_order_history(self, user_id, filters=None) -> Page:
        """List the orders of one user, as that user would see them."""
        return self.list_orders(filters, Actor(user_id=user_id, role=Role.CUSTOMER))

    def get_orders_by_status(self, status: Union[OrderStatus, str]) -> List[Order]:
        target = _validate(UpdateOrderStatusDTO, {"status": status}).status
        return self.transactions.read(lambda: self.orders.find_by_status(target))

    def get_order_stats(self) -> OrderStats:
        """Counts per status and revenue from CONFIRMED/SHIPPED/DELIVERED."""
        return self.transactions.read(self.orders.get_stats)

    # ---- Helpers ----
    def _load_visible(self, order_id, actor: Optional[Actor], for_update: bool = False) -> Order:
        order = self.orders.get(order_id, for_update=for_update)
        if order is None:
            raise OrderNotFoundError(order_id)
        if not policy.can_view(order, actor):
            raise AccessDeniedError(order_id)
        return order

    def _restore_stock(self, order: Order) -> None:
        for item in order.items:
            self.catalog.increment_stock(item.product_id, item.quantity)
