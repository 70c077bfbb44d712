"""
Order Command Repository Implementation

Status transitions are single conditional UPDATE statements. Under read
committed a concurrent writer blocks on the row lock and then re-evaluates
the WHERE clause, so exactly one worker wins each transition.
"""

from datetime import datetime, timezone
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.sqlalchemy_helper import as_utc, flush_new
from src.platform.logging.loguru_io import Logger
from src.service.settlement.app.interface.i_order_command_repo import IOrderCommandRepo
from src.service.settlement.domain.entity.order_entity import Order
from src.service.settlement.domain.enum.order_status import ORDER_TRANSITIONS, OrderStatus
from src.service.settlement.driven_adapter.model.order_model import OrderModel
from src.service.settlement.driven_adapter.model.payment_distribution_model import (
    PaymentDistributionModel,
)


class OrderCommandRepoImpl(IOrderCommandRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _model_to_entity(model: OrderModel) -> Order:
        return Order(
            id=model.id,
            event_id=model.event_id,
            user_id=model.user_id,
            quantity=model.quantity,
            total_price=model.total_price,
            status=OrderStatus(model.status),
            transaction_hash=model.transaction_hash,
            nft_mint_address=model.nft_mint_address,
            mint_attempts=model.mint_attempts,
            next_attempt_at=as_utc(model.next_attempt_at),
            last_error=model.last_error,
            expires_at=as_utc(model.expires_at),
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
            paid_at=as_utc(model.paid_at),
            completed_at=as_utc(model.completed_at),
        )

    async def _transition(
        self,
        *,
        order_id: UUID,
        target: OrderStatus,
        sources: Iterable[OrderStatus] | None = None,
        **values: Any,
    ) -> bool:
        allowed = [s.value for s in (sources or ORDER_TRANSITIONS[target])]
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status.in_(allowed))
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        won = result.rowcount == 1  # type: ignore[attr-defined]
        if not won:
            Logger.base.info(f'⚖️ [ORDER] {order_id} lost transition to {target}')
        return won

    @Logger.io
    async def create(self, *, order: Order) -> Order:
        now = datetime.now(timezone.utc)
        model = OrderModel(
            id=order.id,
            event_id=order.event_id,
            user_id=order.user_id,
            quantity=order.quantity,
            total_price=order.total_price,
            status=order.status.value,
            expires_at=order.expires_at,
            mint_attempts=order.mint_attempts,
            created_at=order.created_at or now,
            updated_at=order.updated_at or now,
        )
        await flush_new(self.session, model, conflict_message=f'Order {order.id} already exists')
        return self._model_to_entity(model)

    @Logger.io
    async def get_by_id(self, *, order_id: UUID) -> Order | None:
        model = await self.session.get(OrderModel, order_id, populate_existing=True)
        return self._model_to_entity(model) if model else None

    @Logger.io
    async def mark_paid(
        self, *, order_id: UUID, transaction_hash: str, paid_at: datetime, next_attempt_at: datetime
    ) -> bool:
        return await self._transition(
            order_id=order_id,
            target=OrderStatus.PAID,
            transaction_hash=transaction_hash,
            paid_at=paid_at,
            next_attempt_at=next_attempt_at,
        )

    @Logger.io
    async def mark_paid_after_cancel(
        self, *, order_id: UUID, transaction_hash: str, paid_at: datetime, next_attempt_at: datetime
    ) -> bool:
        return await self._transition(
            order_id=order_id,
            target=OrderStatus.PAID,
            sources=[OrderStatus.CANCELLED],
            transaction_hash=transaction_hash,
            paid_at=paid_at,
            next_attempt_at=next_attempt_at,
        )

    @Logger.io
    async def mark_payment_stranded(
        self, *, order_id: UUID, transaction_hash: str, paid_at: datetime, last_error: str
    ) -> bool:
        return await self._transition(
            order_id=order_id,
            target=OrderStatus.FAILED,
            sources=[OrderStatus.CANCELLED],
            transaction_hash=transaction_hash,
            paid_at=paid_at,
            last_error=last_error,
            next_attempt_at=None,
        )

    @Logger.io
    async def mark_minting(self, *, order_id: UUID) -> bool:
        return await self._transition(order_id=order_id, target=OrderStatus.MINTING)

    @Logger.io
    async def mark_completed(
        self, *, order_id: UUID, nft_mint_address: str, completed_at: datetime
    ) -> bool:
        return await self._transition(
            order_id=order_id,
            target=OrderStatus.COMPLETED,
            nft_mint_address=nft_mint_address,
            completed_at=completed_at,
            next_attempt_at=None,
            last_error=None,
        )

    @Logger.io
    async def mark_failed(self, *, order_id: UUID, last_error: str) -> bool:
        return await self._transition(
            order_id=order_id,
            target=OrderStatus.FAILED,
            last_error=last_error,
            next_attempt_at=None,
        )

    @Logger.io
    async def mark_cancelled(self, *, order_id: UUID) -> bool:
        return await self._transition(order_id=order_id, target=OrderStatus.CANCELLED)

    @Logger.io
    async def schedule_next_attempt(
        self,
        *,
        order_id: UUID,
        mint_attempts: int,
        next_attempt_at: datetime,
        last_error: str | None,
    ) -> None:
        await self.session.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.status.in_([OrderStatus.PAID.value, OrderStatus.MINTING.value]),
            )
            .values(
                mint_attempts=mint_attempts,
                next_attempt_at=next_attempt_at,
                last_error=last_error,
            )
            .execution_options(synchronize_session=False)
        )

    @Logger.io
    async def list_expired_pending(self, *, now: datetime, limit: int) -> list[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.status == OrderStatus.PENDING.value, OrderModel.expires_at <= now)
            .order_by(OrderModel.expires_at)
            .limit(limit)
        )
        return [self._model_to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def list_due_for_minting(self, *, now: datetime, limit: int) -> list[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .where(
                OrderModel.status.in_([OrderStatus.PAID.value, OrderStatus.MINTING.value]),
                or_(OrderModel.next_attempt_at.is_(None), OrderModel.next_attempt_at <= now),
            )
            .order_by(OrderModel.next_attempt_at)
            .limit(limit)
        )
        return [self._model_to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def list_completed_without_distribution(self, *, limit: int) -> list[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .outerjoin(
                PaymentDistributionModel, PaymentDistributionModel.order_id == OrderModel.id
            )
            .where(
                OrderModel.status == OrderStatus.COMPLETED.value,
                PaymentDistributionModel.id.is_(None),
            )
            .order_by(OrderModel.completed_at)
            .limit(limit)
        )
        return [self._model_to_entity(m) for m in result.scalars().all()]
