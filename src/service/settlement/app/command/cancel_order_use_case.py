"""
Cancel Order Use Case

Buyer cancellation and payment-timeout expiry share one path: PENDING →
CANCELLED and the reserved quantity goes back to the event, atomically.
Once payment is confirmed the order can no longer be cancelled.
"""

from datetime import datetime, timezone
from uuid import UUID

from opentelemetry import trace

from src.platform.database.unit_of_work import AbstractUnitOfWork, UnitOfWorkFactory
from src.platform.exception.exceptions import NotFoundError, UnauthorizedActorError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.domain.entity.order_entity import Order
from src.service.settlement.domain.enum.order_status import OrderStatus


class CancelOrderUseCase:
    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory
        self.tracer = trace.get_tracer(__name__)

    @staticmethod
    async def _cancel_pending(*, uow: AbstractUnitOfWork, order: Order) -> bool:
        won = await uow.order_command_repo.mark_cancelled(order_id=order.id)
        if not won:
            return False
        await uow.event_inventory_repo.release_tickets(
            event_id=order.event_id, quantity=order.quantity
        )
        await uow.commit()
        metrics.record_order_transition(status=OrderStatus.CANCELLED)
        return True

    @Logger.io
    async def execute(self, *, order_id: UUID, user_id: UUID) -> Order:
        """
        Raises:
            NotFoundError: unknown order
            UnauthorizedActorError: caller is not the buyer
            InvalidStateTransitionError: order already paid
        """
        with self.tracer.start_as_current_span(
            'use_case.cancel_order', attributes={'order.id': str(order_id)}
        ):
            async with self.uow_factory() as uow:
                order = await uow.order_command_repo.get_by_id(order_id=order_id)
                if not order:
                    raise NotFoundError(f'Order {order_id} not found')
                if order.user_id != user_id:
                    raise UnauthorizedActorError('Only the buyer can cancel this order')
                if order.status in (OrderStatus.CANCELLED, OrderStatus.FAILED):
                    return order

                order.ensure_can_transition(OrderStatus.CANCELLED)
                cancelled = await self._cancel_pending(uow=uow, order=order)
                current = await uow.order_command_repo.get_by_id(order_id=order_id) or order

            if not cancelled:
                # Lost the race: expiry already cancelled it, or the payment landed first
                if current.status != OrderStatus.CANCELLED:
                    current.ensure_can_transition(OrderStatus.CANCELLED)
                return current

            Logger.base.info(f'🚫 [ORDER] {order_id} cancelled by buyer')
            return current

    @Logger.io
    async def expire(self, *, order_id: UUID, now: datetime | None = None) -> bool:
        """Cancel an unpaid order whose payment window has passed; False if it no longer applies"""
        now = now or datetime.now(timezone.utc)
        with self.tracer.start_as_current_span(
            'use_case.expire_order', attributes={'order.id': str(order_id)}
        ):
            async with self.uow_factory() as uow:
                order = await uow.order_command_repo.get_by_id(order_id=order_id)
                if not order or not order.is_expired(now=now):
                    return False
                expired = await self._cancel_pending(uow=uow, order=order)

            if expired:
                Logger.base.info(f'⌛ [ORDER] {order_id} expired without payment')
            return expired
