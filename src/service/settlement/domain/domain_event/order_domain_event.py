"""
Order Domain Events

Published after the owning transaction commits; consumers must treat them
as at-least-once (every handler is idempotent on order_id).
"""

from datetime import datetime, timezone
from uuid import UUID

import attrs

from src.service.settlement.domain.entity.order_entity import Order


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@attrs.define
class OrderPaidEvent:
    """Payment confirmed on-chain; requests minting for the order"""

    order_id: UUID
    event_id: UUID
    quantity: int
    transaction_hash: str
    occurred_at: datetime = attrs.field(factory=_utcnow)

    @property
    def aggregate_id(self) -> UUID:
        return self.order_id

    @classmethod
    def from_order(cls, *, order: Order) -> 'OrderPaidEvent':
        assert order.transaction_hash, 'Paid order must carry its payment transaction'
        return cls(
            order_id=order.id,
            event_id=order.event_id,
            quantity=order.quantity,
            transaction_hash=order.transaction_hash,
        )

    def to_message(self) -> dict[str, str | int]:
        return {
            'order_id': str(self.order_id),
            'event_id': str(self.event_id),
            'quantity': self.quantity,
            'transaction_hash': self.transaction_hash,
            'occurred_at': self.occurred_at.isoformat(),
        }
