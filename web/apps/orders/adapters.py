"""In-process adapters for the orders domain ports.

These adapters implement ``CatalogPort``, ``OrderRepositoryPort`` and
``TransactionPort`` without a database. They are intended for unit tests
and local development where deterministic behavior is useful and no
persistence is required.
"""

import copy
import math
import threading
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, TypeVar
from uuid import UUID, uuid4

from .domain import (
    REVENUE_STATUSES,
    CatalogPort,
    Order,
    OrderRepositoryPort,
    OrderStats,
    OrderStatus,
    Page,
    Product,
    TransactionPort,
    quantize_money,
)
from .errors import ProductNotFoundError

T = TypeVar("T")


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class InMemoryCatalog(CatalogPort):
    """Dict-backed implementation of ``CatalogPort``."""

    def __init__(self):
        self.products: Dict[UUID, Product] = {}

    def add(self, name: str, price, stock: int, product_id: Optional[UUID] = None) -> Product:
        """Register a product and return it."""
        product = Product(id=product_id or uuid4(), name=name, price=Decimal(str(price)), stock=stock)
        self.products[product.id] = product
        return product

    def stock_of(self, product_id: UUID) -> int:
        return self.products[product_id].stock

    def get_product(self, product_id: UUID, for_update: bool = False) -> Optional[Product]:
        return self.products.get(product_id)

    def decrement_stock(self, product_id: UUID, quantity: int) -> bool:
        product = self.products.get(product_id)
        if product is None or product.stock < quantity:
            return False
        self.products[product_id] = replace(product, stock=product.stock - quantity)
        return True

    def increment_stock(self, product_id: UUID, quantity: int) -> None:
        product = self.products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        self.products[product_id] = replace(product, stock=product.stock + quantity)


class InMemoryOrderRepository(OrderRepositoryPort):
    """Dict-backed implementation of ``OrderRepositoryPort``.

    Orders are stored as copies so callers can not mutate persisted state
    behind the repository's back.
    """

    def __init__(self, catalog: Optional[InMemoryCatalog] = None):
        self.orders: Dict[UUID, Order] = {}
        self.catalog = catalog

    def create(self, order: Order) -> UUID:
        now = datetime.now(timezone.utc)
        items = [
            replace(
                it,
                id=uuid4(),
                product_name=self._product_name(it.product_id),
            )
            for it in order.items
        ]
        stored = replace(order, id=uuid4(), items=items, created_at=now, updated_at=now)
        self.orders[stored.id] = stored
        return stored.id

    def get(self, order_id, for_update: bool = False) -> Optional[Order]:
        order = self.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    def set_status(self, order_id, status: OrderStatus, expected: Optional[OrderStatus] = None) -> bool:
        order = self.orders.get(order_id)
        if order is None or (expected is not None and order.status != expected):
            return False
        self.orders[order_id] = replace(order, status=status, updated_at=datetime.now(timezone.utc))
        return True

    def find_with_filters(self, filters, user_id: Optional[UUID] = None) -> Page:
        rows = [
            o
            for o in self.orders.values()
            if (user_id is None or o.user_id == user_id)
            and (filters.status is None or o.status == filters.status)
            and (filters.start_date is None or o.created_at >= _aware(filters.start_date))
            and (filters.end_date is None or o.created_at <= _aware(filters.end_date))
        ]
        rows.sort(key=lambda o: getattr(o, filters.sort_by), reverse=filters.sort_order == "DESC")
        offset = (filters.page - 1) * filters.limit
        return Page(
            results=[copy.deepcopy(o) for o in rows[offset : offset + filters.limit]],
            total=len(rows),
            page=filters.page,
            limit=filters.limit,
            total_pages=math.ceil(len(rows) / filters.limit) if filters.limit else 1,
        )

    def find_by_status(self, status: OrderStatus) -> List[Order]:
        rows = sorted(
            (o for o in self.orders.values() if o.status == status), key=lambda o: o.created_at, reverse=True
        )
        return [copy.deepcopy(o) for o in rows]

    def get_stats(self) -> OrderStats:
        counts = {f"{s.value.lower()}_orders": 0 for s in OrderStatus}
        revenue = Decimal("0")
        for o in self.orders.values():
            counts[f"{o.status.value.lower()}_orders"] += 1
            if o.status in REVENUE_STATUSES:
                revenue += o.total_amount
        return OrderStats(total_orders=len(self.orders), total_revenue=quantize_money(revenue), **counts)

    def _product_name(self, product_id: UUID) -> Optional[str]:
        if self.catalog is None:
            return None
        product = self.catalog.get_product(product_id)
        return product.name if product else None


class SnapshotTransactionRunner(TransactionPort):
    """Run units of work against in-memory adapters with rollback.

    The ``products``/``orders`` dicts of the registered stores are copied
    before the callback runs and put back if it raises, giving
    all-or-nothing semantics without a database. Units of work are
    serialized by a lock.
    """

    def __init__(self, *stores):
        self.stores = stores
        self._lock = threading.RLock()

    def run(self, fn: Callable[[], T]) -> T:
        with self._lock:
            snapshots = [{k: dict(v) for k, v in vars(s).items() if isinstance(v, dict)} for s in self.stores]
            try:
                return fn()
            except Exception:
                for store, snapshot in zip(self.stores, snapshots):
                    for name, data in snapshot.items():
                        setattr(store, name, data)
                raise

    def read(self, fn: Callable[[], T]) -> T:
        with self._lock:
            return fn()
