"""Domain models, ports and status rules for orders.

This module contains simple dataclasses used as DTOs for orders and
catalog products, the order status state machine, and protocol
definitions (ports) for the collaborators the order service depends on:
the catalog (price and stock), the order repository and the
transaction boundary. Nothing in here touches the database.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, List, Optional, Protocol, TypeVar
from uuid import UUID

T = TypeVar("T")

CENTS = Decimal("0.01")


def quantize_money(amount) -> Decimal:
    """Round a monetary amount to 2 decimal places."""
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


# ---- Enums ----
class OrderStatus(str, Enum):
    """Enumeration of the possible order statuses.

    PENDING is the only legal initial state; DELIVERED and CANCELLED are
    terminal."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})
REVENUE_STATUSES = frozenset({OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Return True when ``current -> target`` is in the transition table."""
    return OrderStatus(target) in ALLOWED_TRANSITIONS[OrderStatus(current)]


def is_terminal(status: OrderStatus) -> bool:
    return not ALLOWED_TRANSITIONS[OrderStatus(status)]


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class Product:
    """Catalog view of a product at lookup time.

    Attributes:
        id: Product identifier.
        name: Display name, used in stock error messages.
        price: Current unit price (2 decimal places).
        stock: Units currently available.
        is_active: Whether the product is listed in the catalog.
    """

    id: UUID
    name: str
    price: Decimal
    stock: int
    is_active: bool = True


@dataclass(frozen=True)
class ReservationLine:
    """One reserved line: the unit price is captured at reservation time."""

    product_id: UUID
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class Reservation:
    """Outcome of a successful stock reservation.

    Attributes:
        total: Sum of ``unit_price * quantity`` over all lines, 2 places.
        lines: Reserved lines in input order.
    """

    total: Decimal
    lines: List[ReservationLine]


@dataclass(frozen=True)
class OrderItem:
    """A single line item in an order.

    Attributes:
        product_id: Weak reference to the catalog product.
        quantity: Number of units ordered (>= 1).
        unit_price: Price per unit at the time the order was created. It
            is intentionally decoupled from the product's current price.
        id: Persistent identifier, or None if not yet saved.
        product_name: Product name when the item was loaded with its
            product reference.

    The dataclass is frozen because items are immutable once created in
    the context of an order.
    """

    product_id: UUID
    quantity: int
    unit_price: Decimal
    id: Optional[UUID] = None
    product_name: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)


@dataclass
class Order:
    """Container for order data.

    Attributes:
        id: Persistent identifier for the order, or None if not yet saved.
        user_id: Identifier of the owning user.
        items: OrderItem objects that make up the order.
        status: Current OrderStatus.
        total_amount: Order total, sum of the items' subtotals.
        shipping_address: Delivery address (required).
        notes: Optional free-text notes from the customer.
        created_at: Creation timestamp, set by persistence.
        updated_at: Last update timestamp, set by persistence.
    """

    id: Optional[UUID]
    user_id: UUID
    items: List[OrderItem]
    shipping_address: str
    status: OrderStatus = OrderStatus.PENDING
    total_amount: Decimal = Decimal("0.00")
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def items_total(self) -> Decimal:
        return quantize_money(sum((it.subtotal for it in self.items), Decimal("0")))


@dataclass
class Page:
    """One page of a filtered order listing.

    Attributes:
        results: Orders on this page.
        total: Number of matching orders before pagination.
        page: Echoed page number (1-based).
        limit: Echoed page size.
        total_pages: ``ceil(total / limit)``, or 1 when there is no limit.
    """

    results: List[Order]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass(frozen=True)
class OrderStats:
    """Aggregate order counts and revenue.

    Revenue only counts CONFIRMED, SHIPPED and DELIVERED orders.
    """

    total_orders: int = 0
    pending_orders: int = 0
    confirmed_orders: int = 0
    shipped_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0
    total_revenue: Decimal = field(default_factory=lambda: Decimal("0.00"))


# ---- Ports (DIP) ----
class CatalogPort(Protocol):
    """Port describing the catalog operations used by the domain.

    Stock changes must be atomic per row: ``decrement_stock`` only
    succeeds when enough stock is left, so stock never goes negative.
    """

    def get_product(self, product_id: UUID, for_update: bool = False) -> Optional[Product]:
        """Return the product, or None if it does not exist."""
        raise NotImplementedError()

    def decrement_stock(self, product_id: UUID, quantity: int) -> bool:
        """Remove ``quantity`` units; False when stock is insufficient."""
        raise NotImplementedError()

    def increment_stock(self, product_id: UUID, quantity: int) -> None:
        """Give back ``quantity`` units.

        Raises:
            ProductNotFoundError: If the product no longer exists.
        """
        raise NotImplementedError()


class OrderRepositoryPort(Protocol):
    """Port describing order persistence used by the domain."""

    def create(self, order: Order) -> UUID:
        """Persist an order together with its items; return its id."""
        raise NotImplementedError()

    def get(self, order_id, for_update: bool = False) -> Optional[Order]:
        """Return the hydrated order, or None if it does not exist."""
        raise NotImplementedError()

    def set_status(self, order_id, status: OrderStatus, expected: Optional[OrderStatus] = None) -> bool:
        """Write ``status``; when ``expected`` is given only if it still holds."""
        raise NotImplementedError()

    def find_with_filters(self, filters, user_id: Optional[UUID] = None) -> Page:
        raise NotImplementedError()

    def find_by_status(self, status: OrderStatus) -> List[Order]:
        raise NotImplementedError()

    def get_stats(self) -> OrderStats:
        raise NotImplementedError()


class TransactionPort(Protocol):
    """Port describing the atomic unit of work.

    ``run`` executes ``fn`` so that all of its writes commit together or
    none of them do.

    ``read`` executes a read-only ``fn`` once, outside any retry loop,
    mapping storage failures the same way ``run`` does.
    """

    def run(self, fn: Callable[[], T]) -> T:
        raise NotImplementedError()

    def read(self, fn: Callable[[], T]) -> T:
        raise NotImplementedError()
