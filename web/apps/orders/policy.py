"""Role-aware visibility and mutation rules for orders.

All role checks of the order service go through the predicates below so
visibility and mutation rules cannot drift apart. An ``actor`` of None
means an internal caller (no end user behind the call).
"""

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .domain import Order


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class Actor(BaseModel):
    """The caller as supplied by the identity layer.

    Attributes:
        user_id: Identifier of the calling user.
        role: The caller's role.
    """

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def owns(order: Order, actor: Actor) -> bool:
    return order.user_id == actor.user_id


def can_view(order: Order, actor: Optional[Actor]) -> bool:
    """Admins and internal callers see every order, customers their own."""
    if actor is None or actor.is_admin:
        return True
    return owns(order, actor)


def can_cancel(order: Order, actor: Optional[Actor]) -> bool:
    """Admins may cancel any order, customers only their own."""
    if actor is None:
        return False
    return actor.is_admin or owns(order, actor)


def can_mutate_status(actor: Optional[Actor]) -> bool:
    """Only admins may move an order through its lifecycle."""
    return actor is not None and actor.is_admin


def ownership_scope(actor: Optional[Actor]) -> Optional[UUID]:
    """Return the user id listings must be restricted to, if any."""
    if actor is None or actor.is_admin:
        return None
    return actor.user_id
