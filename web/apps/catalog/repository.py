"""Django ORM repository for catalog products and their stock.

This module implements the orders ``CatalogPort``: product lookup plus
atomic stock adjustments. Stock is never read-modified-written in
Python; every change is a single conditional ``UPDATE`` so two
concurrent reservations can not both take the last unit, and the
counter can not go below zero.

The repository never opens its own transaction. Callers wrap it in the
same atomic block as the order writes so a failure anywhere rolls the
stock changes back too.
"""

from typing import List, Optional
from uuid import UUID

from django.conf import settings
from django.db.models import F

from apps.orders.domain import Product
from apps.orders.errors import ProductNotFoundError
from .models import ProductModel


def _to_domain(obj: ProductModel) -> Product:
    return Product(id=obj.id, name=obj.name, price=obj.price, stock=obj.stock, is_active=obj.is_active)


def _parse_id(product_id) -> Optional[UUID]:
    if isinstance(product_id, UUID):
        return product_id
    try:
        return UUID(str(product_id))
    except ValueError:
        return None


def _require_positive(quantity: int) -> None:
    if quantity <= 0:
        raise ValueError("Quantity must be positive")


class ProductRepository:
    """Repository class for catalog lookups and stock adjustments.

    Provides methods for looking up products, checking stock levels and
    atomically decrementing or restoring stock while preventing
    overselling.
    """

    def get_product(self, product_id, for_update: bool = False) -> Optional[Product]:
        """Look up a product by id.

        Args:
            product_id: Product identifier (UUID or its string form).
            for_update: Lock the row (``SELECT ... FOR UPDATE``) until the
                surrounding transaction ends. Ignored by backends without
                row locks.

        Returns:
            Product | None: The product, or None if it does not exist.
        """
        pid = _parse_id(product_id)
        if pid is None:
            return None
        qs = ProductModel.objects.filter(pk=pid)
        if for_update:
            qs = qs.select_for_update()
        obj = qs.first()
        return _to_domain(obj) if obj else None

    def decrement_stock(self, product_id, quantity: int) -> bool:
        """Atomically remove ``quantity`` units from a product's stock.

        The update only matches while ``stock >= quantity``, so the
        check and the decrement happen in one statement.

        Args:
            product_id: Product identifier.
            quantity: Positive number of units to remove.

        Returns:
            bool: True if the stock was decremented, False if the product
                is missing or has insufficient stock (nothing changed).

        Raises:
            ValueError: If ``quantity`` is not positive.
        """
        _require_positive(quantity)
        pid = _parse_id(product_id)
        if pid is None:
            return False
        updated = ProductModel.objects.filter(pk=pid, stock__gte=quantity).update(
            stock=F("stock") - quantity
        )
        return updated == 1

    def increment_stock(self, product_id, quantity: int) -> None:
        """Atomically give ``quantity`` units back to a product.

        Raises:
            ValueError: If ``quantity`` is not positive.
            ProductNotFoundError: If the product does not exist.
        """
        _require_positive(quantity)
        pid = _parse_id(product_id)
        updated = 0 if pid is None else ProductModel.objects.filter(pk=pid).update(stock=F("stock") + quantity)
        if updated != 1:
            raise ProductNotFoundError(product_id)

    def check_stock(self, product_id, quantity: int) -> bool:
        """Return True when the product exists and can cover ``quantity``."""
        product = self.get_product(product_id)
        return product is not None and product.stock >= quantity

    def set_stock(self, product_id, quantity: int) -> None:
        """Set the absolute stock level of an existing product.

        Raises:
            ValueError: If ``quantity`` is negative.
            ProductNotFoundError: If the product does not exist.
        """
        if quantity < 0:
            raise ValueError("Stock can not be negative")
        pid = _parse_id(product_id)
        updated = 0 if pid is None else ProductModel.objects.filter(pk=pid).update(stock=quantity)
        if updated != 1:
            raise ProductNotFoundError(product_id)

    def find_low_stock(self, threshold: Optional[int] = None) -> List[Product]:
        """Return active products whose stock is at or below ``threshold``.

        Args:
            threshold: Stock level to compare against. Defaults to
                ``settings.CATALOG_LOW_STOCK_THRESHOLD``.
        """
        if threshold is None:
            threshold = getattr(settings, "CATALOG_LOW_STOCK_THRESHOLD", 5)
        qs = ProductModel.objects.filter(is_active=True, stock__lte=threshold).order_by("stock", "name")
        return [_to_domain(obj) for obj in qs]
