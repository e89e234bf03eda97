"""Pydantic schemas for orders.

This module exposes lightweight request/validation schemas used by the
order service. Field names are snake_case; the camelCase spellings used
by API clients (``productId``, ``shippingAddress``, ``sortBy`` ...) are
accepted as aliases.
"""

import re
from datetime import date, datetime, time
from typing import Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .domain import OrderStatus

MAX_TEXT_LENGTH = 500
MAX_LIMIT = 100
MAX_PAGE = 1_000_000
DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Accepted sort keys mapped to the canonical (model field) name.
SORT_FIELDS = {
    "createdAt": "created_at",
    "created_at": "created_at",
    "totalAmount": "total_amount",
    "total_amount": "total_amount",
    "status": "status",
}
DEFAULT_SORT_FIELD = "created_at"


def _upper_status(v):
    if isinstance(v, str):
        return v.strip().upper()
    return v


class OrderItemIn(BaseModel):
    """Input schema for a single order line item.

    Attributes:
        product_id: Catalog product identifier (UUID).
        quantity: Positive integer indicating units requested.
    """

    model_config = ConfigDict(populate_by_name=True)

    product_id: UUID = Field(validation_alias=AliasChoices("product_id", "productId"))
    quantity: int = Field(ge=1)


class CreateOrderDTO(BaseModel):
    """Schema for creating an order.

    Attributes:
        items: Non-empty list of `OrderItemIn` items.
        shipping_address: Delivery address, stripped, 1-500 characters.
        notes: Optional notes, at most 500 characters.
    """

    model_config = ConfigDict(populate_by_name=True)

    items: list[OrderItemIn] = Field(min_length=1)
    shipping_address: str = Field(
        max_length=MAX_TEXT_LENGTH,
        validation_alias=AliasChoices("shipping_address", "shippingAddress"),
    )
    notes: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH)

    @field_validator("shipping_address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Strip the address and reject blank values.

        Raises:
            ValueError: When the address is empty after stripping.
        """
        v2 = v.strip()
        if not v2:
            raise ValueError("Shipping address is required")
        return v2


class OrderFilterDTO(BaseModel):
    """Filter, sorting and pagination options for order listings.

    ``start_date`` and ``end_date`` are inclusive bounds on the creation
    timestamp. A bare date is widened to the start (or end) of that day.
    Unknown ``sort_by`` values fall back to the creation timestamp.
    ``limit`` is capped at MAX_LIMIT and ``page`` at MAX_PAGE so the offset
    always fits the database integer type.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: Optional[OrderStatus] = None
    start_date: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("start_date", "startDate")
    )
    end_date: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("end_date", "endDate")
    )
    page: int = Field(default=1, ge=1, le=MAX_PAGE)
    limit: int = Field(default=10, ge=1, le=MAX_LIMIT)
    sort_by: str = Field(
        default=DEFAULT_SORT_FIELD, validation_alias=AliasChoices("sort_by", "sortBy")
    )
    sort_order: Literal["ASC", "DESC"] = Field(
        default="DESC", validation_alias=AliasChoices("sort_order", "sortOrder")
    )

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return _upper_status(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def widen_dates(cls, v, info):
        if isinstance(v, str) and DATE_ONLY_RE.match(v.strip()):
            v = date.fromisoformat(v.strip())
        if isinstance(v, date) and not isinstance(v, datetime):
            bound = time.min if info.field_name == "start_date" else time.max
            return datetime.combine(v, bound)
        return v

    @field_validator("sort_by", mode="before")
    @classmethod
    def canonical_sort_field(cls, v) -> str:
        return SORT_FIELDS.get(v, DEFAULT_SORT_FIELD) if isinstance(v, str) else DEFAULT_SORT_FIELD

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, v):
        return v.upper() if isinstance(v, str) else v


class UpdateOrderStatusDTO(BaseModel):
    """Schema for an admin status change."""

    status: OrderStatus

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return _upper_status(v)
