"""
Settle Payment Use Case

Records the primary-sale revenue split for a COMPLETED order. Exactly one
PaymentDistribution exists per order: a concurrent duplicate hits the unique
order_id constraint and the existing row is returned instead.
"""

from typing import Optional
from uuid import UUID

from opentelemetry import trace

from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import NotFoundError, UniqueViolationError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.app.command.platform_config_resolver import (
    resolve_platform_fee_rate,
    resolve_platform_wallet,
)
from src.service.settlement.domain.entity.payment_distribution_entity import PaymentDistribution
from src.service.settlement.domain.enum.order_status import OrderStatus
from src.service.settlement.domain.exceptions import InvalidStateTransitionError
from src.service.settlement.domain.value_object.money import RevenueSplit


class SettlePaymentUseCase:
    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory
        self.tracer = trace.get_tracer(__name__)

    async def _existing(self, *, order_id: UUID) -> Optional[PaymentDistribution]:
        async with self.uow_factory() as uow:
            return await uow.payment_distribution_repo.get_by_order(order_id=order_id)

    @Logger.io
    async def execute(self, *, order_id: UUID) -> PaymentDistribution:
        """
        Raises:
            NotFoundError: unknown order or event
            InvalidStateTransitionError: order is not COMPLETED
            ValidationError: fee percentage or platform wallet misconfigured
        """
        with self.tracer.start_as_current_span(
            'use_case.settle_payment', attributes={'order.id': str(order_id)}
        ):
            existing = await self._existing(order_id=order_id)
            if existing:
                metrics.record_settlement(kind='primary', result='existing')
                return existing

            try:
                async with self.uow_factory() as uow:
                    order = await uow.order_command_repo.get_by_id(order_id=order_id)
                    if not order:
                        raise NotFoundError(f'Order {order_id} not found')
                    if order.status != OrderStatus.COMPLETED:
                        raise InvalidStateTransitionError(
                            entity=f'Order {order_id}', current=order.status, target='settled'
                        )

                    event = await uow.event_inventory_repo.get_by_id(event_id=order.event_id)
                    if not event:
                        raise NotFoundError(f'Event {order.event_id} not found')

                    platform_wallet = await resolve_platform_wallet(uow)
                    if event.organizer_id is None:
                        # No organizer to pay out: the whole amount stays with the platform
                        split = RevenueSplit.platform_only(total=order.total_price)
                    else:
                        split = RevenueSplit.compute(
                            total=order.total_price, fee_rate=await resolve_platform_fee_rate(uow)
                        )

                    distribution = await uow.payment_distribution_repo.create(
                        distribution=PaymentDistribution.from_split(
                            order_id=order_id,
                            split=split,
                            platform_wallet=platform_wallet,
                            organizer_wallet=event.organizer_wallet,
                            transaction_hash=order.transaction_hash,
                        )
                    )
                    await uow.commit()
            except UniqueViolationError:
                # Settled concurrently
                existing = await self._existing(order_id=order_id)
                if existing is None:
                    raise
                metrics.record_settlement(kind='primary', result='existing')
                return existing

            metrics.record_settlement(kind='primary', result='created')
            Logger.base.info(
                f'🏦 [SETTLE] Order {order_id}: total={split.total} '
                f'organizer={split.counterparty_share} platform={split.platform_share}'
            )
            return distribution
