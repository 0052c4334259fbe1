# Overview: Collaborator contracts consumed by the subscription core, plus the caller context type.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Union


@dataclass(frozen=True)
class ExternalOrder:
    """Gateway order descriptor handed to the client to complete payment."""
    id: str
    amount: int
    currency: str

    def to_dict(self) -> dict:
        return {"id": self.id, "amount": self.amount, "currency": self.currency}


@dataclass(frozen=True)
class ProductInfo:
    id: int
    price_per_unit: Decimal
    is_active: bool
    name: str = ""


class PaymentGateway(Protocol):
    def create_order(self, amount: int, currency: str, receipt: str, notes: dict) -> ExternalOrder:
        ...

    def verify_webhook_signature(self, raw_body: bytes, signature: str | None) -> bool:
        ...


class ProductDirectory(Protocol):
    def get_product(self, product_id: int) -> ProductInfo | None:
        ...


# =============================================================================
# CALLER CONTEXT
# =============================================================================

@dataclass(frozen=True)
class Owner:
    """Customer acting on their own subscriptions."""
    user_id: int


@dataclass(frozen=True)
class Privileged:
    """Admin/operator path: ownership checks are skipped."""


PRIVILEGED = Privileged()

Caller = Union[Owner, Privileged]
