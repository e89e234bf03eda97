# Make 'apps' and 'gateway' (inside web/) importable before collection
import sys
import uuid
from decimal import Decimal
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parent  # .../web
p = str(BASE_DIR)
if p not in sys.path:
    sys.path.insert(0, p)


@pytest.fixture(autouse=True)
def no_retry_backoff(settings):
    settings.ORDERS_TX_RETRY_BACKOFF_BASE = 0.0
    settings.ORDERS_TX_RETRY_MAX_SLEEP = 0.0


@pytest.fixture
def service():
    from apps.orders.providers import get_order_service

    return get_order_service()


@pytest.fixture
def make_product(db):
    """Factory creating catalog products: make_product(stock=10, price="9.99")."""
    from apps.catalog.models import ProductModel

    def _make(name=None, price="10.00", stock=10, is_active=True):
        return ProductModel.objects.create(
            name=name or f"Product {uuid.uuid4().hex[:6]}",
            price=Decimal(str(price)),
            stock=stock,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def stock_of():
    from apps.catalog.models import ProductModel

    return lambda product: ProductModel.objects.get(pk=product.pk).stock


@pytest.fixture
def customer():
    from apps.orders.policy import Actor, Role

    return Actor(user_id=uuid.uuid4(), role=Role.CUSTOMER)


@pytest.fixture
def other_customer():
    from apps.orders.policy import Actor, Role

    return Actor(user_id=uuid.uuid4(), role=Role.CUSTOMER)


@pytest.fixture
def admin():
    from apps.orders.policy import Actor, Role

    return Actor(user_id=uuid.uuid4(), role=Role.ADMIN)
