"""Concurrent reservations against real database transactions.

Each worker thread gets its own database connection, so these tests need
``transaction=True``: the default test transaction would hide the rows
from the other threads.
"""

import threading

import pytest
from django.db import connections

from apps.orders.errors import InsufficientStockError, InvalidStateError

WORKERS = 6


def _run_in_threads(n, target):
    barrier = threading.Barrier(n)
    outcomes = []
    lock = threading.Lock()

    def worker():
        try:
            barrier.wait()
            result = target()
        except Exception as exc:  # collected and asserted on by the test
            result = exc
        finally:
            connections.close_all()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return outcomes


@pytest.mark.django_db(transaction=True)
def test_last_units_are_sold_exactly_once(service, make_product, stock_of, customer):
    """Stock N with N + 1 concurrent single-unit orders: exactly N succeed."""
    p = make_product(name="Limited", stock=WORKERS - 1)

    outcomes = _run_in_threads(
        WORKERS,
        lambda: service.create_order(customer.user_id, [{"product_id": p.id, "quantity": 1}], "1 Main St"),
    )

    failures = [o for o in outcomes if isinstance(o, Exception)]
    assert len(outcomes) == WORKERS
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)
    assert stock_of(p) == 0


@pytest.mark.django_db(transaction=True)
def test_concurrent_cancels_restore_stock_once(service, make_product, stock_of, customer):
    p = make_product(stock=5)
    order = service.create_order(customer.user_id, [{"product_id": p.id, "quantity": 3}], "1 Main St")

    outcomes = _run_in_threads(3, lambda: service.cancel_order(order.id, customer))

    failures = [o for o in outcomes if isinstance(o, Exception)]
    assert len(failures) == 2
    assert all(isinstance(f, InvalidStateError) for f in failures)
    assert stock_of(p) == 5
