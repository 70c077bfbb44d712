from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import attrs
from uuid_utils.compat import uuid7

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import ConflictError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.settlement.domain.enum.order_status import ORDER_TRANSITIONS, OrderStatus
from src.service.settlement.domain.exceptions import InvalidStateTransitionError
from src.service.settlement.domain.value_object.money import to_amount


@attrs.define
class Order:
    id: UUID
    event_id: UUID
    user_id: UUID
    quantity: int
    total_price: Decimal
    status: OrderStatus = OrderStatus.PENDING
    transaction_hash: Optional[str] = None
    nft_mint_address: Optional[str] = None
    mint_attempts: int = 0
    next_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    @Logger.io
    def create(
        cls,
        *,
        event_id: UUID,
        user_id: UUID,
        quantity: int,
        unit_price: Decimal,
    ) -> 'Order':
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise ValidationError('quantity must be an integer')
        if quantity < 1 or quantity > settings.MAX_TICKETS_PER_ORDER:
            raise ValidationError(
                f'quantity must be between 1 and {settings.MAX_TICKETS_PER_ORDER}'
            )

        now = datetime.now(timezone.utc)
        return cls(
            id=uuid7(),
            event_id=event_id,
            user_id=user_id,
            quantity=quantity,
            total_price=to_amount(unit_price) * quantity,
            status=OrderStatus.PENDING,
            expires_at=now + timedelta(seconds=settings.ORDER_PAYMENT_TTL_SECONDS),
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def is_expired(self, *, now: datetime) -> bool:
        return (
            self.status == OrderStatus.PENDING
            and self.expires_at is not None
            and self.expires_at <= now
        )

    def ensure_can_transition(self, target: OrderStatus) -> None:
        if self.status not in ORDER_TRANSITIONS[target]:
            raise InvalidStateTransitionError(
                entity=f'Order {self.id}', current=self.status, target=target
            )

    @Logger.io
    def is_payment_replay(self, *, transaction_hash: str) -> bool:
        """
        True when this exact payment was already applied.

        Raises:
            ConflictError: the order was paid with a different transaction

        A CANCELLED order is not a replay: a payment that is final on-chain still
        has to be settled against it.
        """
        if self.status in (OrderStatus.PENDING, OrderStatus.CANCELLED):
            return False
        if self.transaction_hash and self.transaction_hash != transaction_hash:
            raise ConflictError(
                f'Order {self.id} already paid by transaction {self.transaction_hash}'
            )
        return True
