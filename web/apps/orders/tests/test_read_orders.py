"""Read side: single order access, filtered listings, history and stats."""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from django.db import DatabaseError

from apps.orders.domain import OrderStatus
from apps.orders.errors import AccessDeniedError, OrderNotFoundError, OrderValidationError, PersistenceError
from apps.orders.models import OrderModel


@pytest.fixture
def place(service, make_product):
    """place(actor, quantity=1, price="10.00") -> Order"""

    def _place(actor, quantity=1, price="10.00"):
        p = make_product(price=price, stock=100)
        return service.create_order(actor.user_id, [{"product_id": p.id, "quantity": quantity}], "1 Main St")

    return _place


def _backdate(order, when):
    OrderModel.objects.filter(pk=order.id).update(created_at=when)


@pytest.mark.django_db
def test_get_order_visibility(service, place, customer, other_customer, admin):
    order = place(customer)

    assert service.get_order(order.id, customer).id == order.id
    assert service.get_order(str(order.id), admin).id == order.id
    # internal callers carry no actor
    assert service.get_order(order.id).id == order.id
    with pytest.raises(AccessDeniedError) as e:
        service.get_order(order.id, other_customer)
    assert e.value.code == "ACCESS_DENIED"


@pytest.mark.django_db
def test_get_order_includes_items_with_product_names(service, make_product, customer):
    p = make_product(name="Blender", price="59.00", stock=2)
    order = service.create_order(customer.user_id, [{"product_id": p.id, "quantity": 1}], "1 Main St")
    got = service.get_order(order.id, customer)
    assert [(it.product_id, it.product_name, it.subtotal) for it in got.items] == [
        (p.id, "Blender", Decimal("59.00"))
    ]


@pytest.mark.django_db
@pytest.mark.parametrize("oid", [uuid.uuid4(), "not-a-uuid", ""])
def test_get_order_unknown_or_malformed(service, admin, oid):
    with pytest.raises(OrderNotFoundError):
        service.get_order(oid, admin)


@pytest.mark.django_db
def test_pagination_slices_and_counts(service, place, customer):
    for _ in range(25):
        place(customer)

    page = service.list_orders({"page": 3, "limit": 10}, customer)

    assert page.total == 25
    assert page.page == 3
    assert page.limit == 10
    assert page.total_pages == 3
    assert len(page.results) == 5


@pytest.mark.django_db
def test_page_past_the_end_is_empty(service, place, customer):
    place(customer)
    page = service.list_orders({"page": 4, "limit": 10}, customer)
    assert page.results == []
    assert page.total == 1
    assert page.total_pages == 1


@pytest.mark.django_db
def test_empty_listing_has_zero_pages(service, customer):
    page = service.list_orders({}, customer)
    assert (page.total, page.total_pages, page.results) == (0, 0, [])


@pytest.mark.django_db
def test_customers_only_see_their_own_orders(service, place, customer, other_customer, admin):
    mine = [place(customer) for _ in range(2)]
    place(other_customer)

    assert {o.id for o in service.list_orders({}, customer).results} == {o.id for o in mine}
    assert service.list_orders({}, admin).total == 3
    assert service.list_orders({}, None).total == 3


@pytest.mark.django_db
def test_status_filter(service, place, customer, admin):
    a = place(customer)
    b = place(customer)
    service.update_status(b.id, "CONFIRMED", admin)

    page = service.list_orders({"status": "confirmed"}, customer)
    assert [o.id for o in page.results] == [b.id]
    page = service.list_orders({"status": OrderStatus.PENDING}, customer)
    assert [o.id for o in page.results] == [a.id]


@pytest.mark.django_db
def test_date_filters_are_inclusive_and_cover_whole_days(service, place, customer):
    early = place(customer)
    middle = place(customer)
    late = place(customer)
    _backdate(early, datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
    _backdate(middle, datetime(2024, 1, 15, 23, 30, tzinfo=timezone.utc))
    _backdate(late, datetime(2024, 2, 1, 0, 0, tzinfo=timezone.utc))

    page = service.list_orders({"startDate": "2024-01-15", "endDate": "2024-01-15"}, customer)
    assert [o.id for o in page.results] == [middle.id]

    page = service.list_orders(
        {"start_date": datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc), "end_date": "2024-02-01"}, customer
    )
    assert page.total == 3


@pytest.mark.django_db
def test_sorting(service, place, customer):
    cheap = place(customer, price="1.00")
    pricey = place(customer, price="50.00")
    middle = place(customer, price="20.00")
    now = datetime.now(timezone.utc)
    _backdate(cheap, now - timedelta(days=2))
    _backdate(pricey, now - timedelta(days=1))
    _backdate(middle, now)

    newest_first = service.list_orders({}, customer).results
    assert [o.id for o in newest_first] == [middle.id, pricey.id, cheap.id]

    by_total = service.list_orders({"sortBy": "totalAmount", "sortOrder": "asc"}, customer).results
    assert [o.id for o in by_total] == [cheap.id, middle.id, pricey.id]

    # unknown sort keys fall back to creation time
    fallback = service.list_orders({"sort_by": "shipping_address", "sort_order": "ASC"}, customer).results
    assert [o.id for o in fallback] == [cheap.id, pricey.id, middle.id]


@pytest.mark.django_db
@pytest.mark.parametrize("filters", [{"page": 0}, {"limit": 0}, {"status": "LOST"}, {"sort_order": "sideways"}])
def test_bad_filters_are_validation_errors(service, customer, filters):
    with pytest.raises(OrderValidationError):
        service.list_orders(filters, customer)


@pytest.mark.django_db
def test_user_order_history(service, place, customer, other_customer):
    mine = place(customer)
    place(other_customer)
    page = service.get_user_order_history(customer.user_id, {"limit": 5})
    assert [o.id for o in page.results] == [mine.id]
    assert page.limit == 5


@pytest.mark.django_db
def test_orders_by_status(service, place, customer, other_customer, admin):
    a = place(customer)
    b = place(other_customer)
    place(customer)
    service.cancel_order(a.id, customer)
    service.cancel_order(b.id, admin)

    cancelled = service.get_orders_by_status("CANCELLED")
    assert {o.id for o in cancelled} == {a.id, b.id}
    assert all(o.status == OrderStatus.CANCELLED for o in cancelled)


@pytest.mark.django_db
def test_stats(service, place, customer, admin):
    place(customer, quantity=1, price="10.00")  # pending
    confirmed = place(customer, quantity=2, price="10.00")
    shipped = place(customer, quantity=1, price="5.55")
    delivered = place(customer, quantity=1, price="4.45")
    cancelled = place(customer, quantity=9, price="10.00")

    service.update_status(confirmed.id, "CONFIRMED", admin)
    for status in ("CONFIRMED", "SHIPPED"):
        service.update_status(shipped.id, status, admin)
    for status in ("CONFIRMED", "SHIPPED", "DELIVERED"):
        service.update_status(delivered.id, status, admin)
    service.cancel_order(cancelled.id, admin)

    stats = service.get_order_stats()
    assert stats.total_orders == 5
    assert stats.pending_orders == 1
    assert stats.confirmed_orders == 1
    assert stats.shipped_orders == 1
    assert stats.delivered_orders == 1
    assert stats.cancelled_orders == 1
    assert stats.total_revenue == Decimal("30.00")


@pytest.mark.django_db
def test_stats_on_empty_store(service):
    stats = service.get_order_stats()
    assert stats.total_orders == 0
    assert stats.total_revenue == Decimal("0.00")


@pytest.mark.django_db
@pytest.mark.parametrize("filters", [{"page": 10**19, "limit": 10}, {"page": 1, "limit": 101}])
def test_out_of_range_pagination_is_rejected(service, customer, filters):
    with pytest.raises(OrderValidationError):
        service.list_orders(filters, customer)


@pytest.mark.django_db
def test_largest_allowed_page_is_just_empty(service, place, customer):
    place(customer)
    page = service.list_orders({"page": 1_000_000, "limit": 100}, customer)
    assert page.results == []
    assert page.total == 1


@pytest.mark.django_db
@pytest.mark.parametrize(
    "call",
    [
        lambda svc, actor: svc.get_order(uuid.uuid4(), actor),
        lambda svc, actor: svc.list_orders({}, actor),
        lambda svc, actor: svc.get_orders_by_status("PENDING"),
        lambda svc, actor: svc.get_order_stats(),
    ],
    ids=["get_order", "list_orders", "by_status", "stats"],
)
def test_database_failures_on_reads_become_persistence_errors(service, admin, monkeypatch, call):
    def broken(*args, **kwargs):
        raise DatabaseError("connection lost")

    for name in ("get", "find_with_filters", "find_by_status", "get_stats"):
        monkeypatch.setattr(service.orders, name, broken)

    with pytest.raises(PersistenceError) as e:
        call(service, admin)
    assert e.value.code == "INTERNAL_ERROR"
    assert isinstance(e.value.__cause__, DatabaseError)
