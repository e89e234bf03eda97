"""Service provider helpers for wiring OrderService with ports.

This module exposes a small factory function `get_order_service` that
returns an `OrderService` wired with the Django ORM implementations:
catalog products, the order repository and the retrying transaction
runner. Unit tests build the service directly with the in-process
adapters from ``apps.orders.adapters`` instead.
"""

from apps.catalog.repository import ProductRepository
from .repository import OrderRepository
from .service import OrderService
from .transactions import DjangoTransactionRunner


def get_order_service() -> OrderService:
    """Return a configured OrderService instance.

    Returns:
        OrderService: A service instance with database-backed ports.
    """
    return OrderService(
        catalog=ProductRepository(),
        orders=OrderRepository(),
        transactions=DjangoTransactionRunner(),
    )
