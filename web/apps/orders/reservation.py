"""Pricing and stock reservation for new orders.

``StockReservation`` validates every requested line against the catalog,
takes the stock and prices the cart. Stock is decremented line by line
as soon as a line validates; a later failure leaves the earlier
decrements applied, so callers must run ``reserve`` inside the same
transaction as the order writes.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Tuple
from uuid import UUID

from .domain import CatalogPort, Reservation, ReservationLine, quantize_money
from .errors import InsufficientStockError, OrderValidationError, ProductNotFoundError

logger = logging.getLogger("orders.reservation")


class StockReservation:
    """Validate availability, decrement stock and compute the order total."""

    def __init__(self, catalog: CatalogPort):
        self.catalog = catalog

    def reserve(self, items: Iterable[Tuple[UUID, int]]) -> Reservation:
        """Reserve stock for ``(product_id, quantity)`` pairs, in order.

        For each line the product is looked up (row-locked where the
        backend supports it), its stock checked, and the stock
        decremented with the catalog's conditional update. A lost race on
        that update is reported as insufficient stock with the fresh
        stock figure.

        Args:
            items: Non-empty sequence of (product_id, quantity) pairs.

        Returns:
            Reservation: Total and per-line unit prices captured now.

        Raises:
            OrderValidationError: If ``items`` is empty or a quantity is
                not positive.
            ProductNotFoundError: If a product does not exist.
            InsufficientStockError: If a product can not cover its line.
        """
        items = list(items)
        if not items:
            raise OrderValidationError(message="Order must contain at least one item")

        total = Decimal("0")
        lines: List[ReservationLine] = []
        for product_id, quantity in items:
            if quantity < 1:
                raise OrderValidationError(message=f"Quantity for product {product_id} must be at least 1")

            product = self.catalog.get_product(product_id, for_update=True)
            if product is None:
                raise ProductNotFoundError(product_id)
            if product.stock < quantity:
                logger.info(
                    "insufficient stock",
                    extra={"product_id": str(product_id), "available": product.stock, "requested": quantity},
                )
                raise InsufficientStockError(product.name, product.stock, quantity)

            if not self.catalog.decrement_stock(product_id, quantity):
                # Someone else took the stock between the read and the update
                fresh = self.catalog.get_product(product_id)
                available = fresh.stock if fresh else 0
                raise InsufficientStockError(product.name, available, quantity)

            total += product.price * quantity
            lines.append(ReservationLine(product_id=product.id, quantity=quantity, unit_price=product.price))

        return Reservation(total=quantize_money(total), lines=lines)
