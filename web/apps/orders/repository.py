"""Repository layer for persisting orders.

This module contains the repository used by the order service to persist
and query orders. It keeps a thin interface so the domain layer is not
coupled to Django ORM details: every method takes and returns domain
objects (or primitives), never model instances.

The repository does not manage transactions; the order service runs it
inside its transaction boundary.
"""

import math
from typing import List, Optional
from uuid import UUID

from django.db.models import Count, Prefetch, Q, Sum
from django.utils import timezone

from .domain import Order, OrderItem, OrderStats, OrderStatus, Page, REVENUE_STATUSES, quantize_money
from .models import OrderItemModel, OrderModel
from .schemas import OrderFilterDTO


def _parse_id(order_id) -> Optional[UUID]:
    if isinstance(order_id, UUID):
        return order_id
    try:
        return UUID(str(order_id))
    except ValueError:
        return None


def _aware(value):
    if value is not None and timezone.is_naive(value):
        return timezone.make_aware(value)
    return value


def _hydrated(qs=None):
    """Orders with their items and each item's product reference."""
    if qs is None:
        qs = OrderModel.objects.all()
    items = OrderItemModel.objects.select_related("product").order_by("line_no")
    return qs.prefetch_related(Prefetch("items", queryset=items))


def _to_domain(obj: OrderModel) -> Order:
    items = [
        OrderItem(
            id=it.id,
            product_id=it.product_id,
            quantity=it.quantity,
            unit_price=it.unit_price,
            product_name=it.product.name,
        )
        for it in obj.items.all()
    ]
    return Order(
        id=obj.id,
        user_id=obj.user_id,
        items=items,
        status=OrderStatus(obj.status),
        total_amount=obj.total_amount,
        shipping_address=obj.shipping_address,
        notes=obj.notes,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


class OrderRepository:
    """Repository that persists Order domain objects using Django ORM."""

    def create(self, order: Order) -> UUID:
        """Persist a new order and its items.

        The order row is written first, then its items referencing the
        new order id with the unit prices captured on the domain items.

        Args:
            order: Domain `Order` instance to persist.

        Returns:
            The persisted order's UUID.
        """
        obj = OrderModel.objects.create(
            user_id=order.user_id,
            status=OrderStatus(order.status).value,
            total_amount=order.total_amount,
            shipping_address=order.shipping_address,
            notes=order.notes,
        )
        OrderItemModel.objects.bulk_create(
            [
                OrderItemModel(
                    order=obj,
                    product_id=it.product_id,
                    quantity=it.quantity,
                    unit_price=it.unit_price,
                    line_no=n,
                )
                for n, it in enumerate(order.items)
            ]
        )
        return obj.id

    def get(self, order_id, for_update: bool = False) -> Optional[Order]:
        """Return the hydrated order or None.

        Args:
            order_id: Order identifier; malformed ids are treated as
                missing.
            for_update: Lock the order row until the surrounding
                transaction ends.
        """
        oid = _parse_id(order_id)
        if oid is None:
            return None
        qs = _hydrated().filter(pk=oid)
        if for_update:
            qs = qs.select_for_update()
        obj = qs.first()
        return _to_domain(obj) if obj else None

    def set_status(self, order_id, status: OrderStatus, expected: Optional[OrderStatus] = None) -> bool:
        """Write a new status, optionally only if the current one matches.

        Returns:
            bool: True if a row was updated.
        """
        qs = OrderModel.objects.filter(pk=order_id)
        if expected is not None:
            qs = qs.filter(status=OrderStatus(expected).value)
        return qs.update(status=OrderStatus(status).value, updated_at=timezone.now()) == 1

    def find_with_filters(self, filters: OrderFilterDTO, user_id: Optional[UUID] = None) -> Page:
        """Return one page of orders matching ``filters``.

        Args:
            filters: Validated filter, sort and pagination options.
            user_id: When given, only orders owned by this user match.

        Returns:
            Page: The requested slice plus the pre-pagination count.
        """
        qs = OrderModel.objects.all()
        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        if filters.status is not None:
            qs = qs.filter(status=filters.status.value)
        if filters.start_date is not None:
            qs = qs.filter(created_at__gte=_aware(filters.start_date))
        if filters.end_date is not None:
            qs = qs.filter(created_at__lte=_aware(filters.end_date))

        total = qs.count()

        prefix = "-" if filters.sort_order == "DESC" else ""
        ordering = [f"{prefix}{filters.sort_by}"]
        if filters.sort_by != "created_at":
            ordering.append("-created_at")
        ordering.append("id")

        offset = (filters.page - 1) * filters.limit
        rows = _hydrated(qs).order_by(*ordering)[offset : offset + filters.limit]

        return Page(
            results=[_to_domain(o) for o in rows],
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=math.ceil(total / filters.limit) if filters.limit else 1,
        )

    def find_by_status(self, status: OrderStatus) -> List[Order]:
        qs = _hydrated().filter(status=OrderStatus(status).value).order_by("-created_at")
        return [_to_domain(o) for o in qs]

    def get_stats(self) -> OrderStats:
        """Aggregate counts per status and revenue in a single query."""
        per_status = {
            f"{s.value.lower()}_orders": Count("id", filter=Q(status=s.value)) for s in OrderStatus
        }
        row = OrderModel.objects.aggregate(
            total_orders=Count("id"),
            total_revenue=Sum("total_amount", filter=Q(status__in=[s.value for s in REVENUE_STATUSES])),
            **per_status,
        )
        revenue = row.pop("total_revenue")
        return OrderStats(total_revenue=quantize_money(revenue or 0), **row)
