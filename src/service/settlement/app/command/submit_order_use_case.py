"""
Submit Order Use Case

Creates a PENDING order and reserves inventory on the event in the same
transaction, so a reservation never exists without its order (and vice versa).
"""

from datetime import datetime, timezone
from uuid import UUID

from opentelemetry import trace

from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import NotFoundError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.domain.entity.order_entity import Order
from src.service.settlement.domain.exceptions import InsufficientInventoryError


class SubmitOrderUseCase:
    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory
        self.tracer = trace.get_tracer(__name__)

    @Logger.io
    async def execute(self, *, event_id: UUID, user_id: UUID, quantity: int) -> Order:
        """
        Raises:
            ValidationError: quantity outside 1..MAX_TICKETS_PER_ORDER or event already started
            NotFoundError: unknown event or user
            InsufficientInventoryError: not enough tickets left
        """
        with self.tracer.start_as_current_span(
            'use_case.submit_order',
            attributes={
                'order.event_id': str(event_id),
                'order.user_id': str(user_id),
                'order.quantity': quantity,
            },
        ):
            async with self.uow_factory() as uow:
                event = await uow.event_inventory_repo.get_by_id(event_id=event_id)
                if not event:
                    raise NotFoundError(f'Event {event_id} not found')
                if not await uow.user_query_repo.get_by_id(user_id=user_id):
                    raise NotFoundError(f'User {user_id} not found')
                if event.has_started(now=datetime.now(timezone.utc)):
                    raise ValidationError('Cannot order tickets for an event that has started')

                order = Order.create(
                    event_id=event_id,
                    user_id=user_id,
                    quantity=quantity,
                    unit_price=event.price,
                )

                reserved = await uow.event_inventory_repo.reserve_tickets(
                    event_id=event_id, quantity=quantity
                )
                if not reserved:
                    raise InsufficientInventoryError(
                        requested=quantity, available=event.tickets_available
                    )

                order = await uow.order_command_repo.create(order=order)
                await uow.commit()

            metrics.record_order_transition(status=order.status)
            Logger.base.info(
                f'🧾 [ORDER] Submitted {order.id} (event={event_id}, qty={quantity}, '
                f'total={order.total_price})'
            )
            return order
