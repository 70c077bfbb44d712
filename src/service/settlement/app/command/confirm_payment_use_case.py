"""
Confirm Payment Use Case

External payment signal for a PENDING order. The payment transaction must be
final on the ledger before the order moves to PAID; the OrderPaidEvent that
follows requests minting.

Replaying the same signal is a no-op (it re-publishes the mint request while
the order is still PAID, which downstream handles idempotently).

Payment finality outranks an off-chain cancel. A payment that is confirmed
after the order was cancelled (by the buyer or by expiry) re-reserves the
tickets and moves the order to PAID. When the tickets are gone the order is
FAILED with the payment hash kept, so the refund owed is on record.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from opentelemetry import trace

from src.platform.config.core_setting import settings
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import (
    LedgerTransientError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.app.interface.i_ledger_client import ILedgerClient
from src.service.settlement.app.interface.i_order_event_publisher import IOrderEventPublisher
from src.service.settlement.domain.domain_event.order_domain_event import OrderPaidEvent
from src.service.settlement.domain.entity.order_entity import Order
from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus
from src.service.settlement.domain.enum.order_status import OrderStatus
from src.service.settlement.domain.exceptions import PaymentRejectedError


class ConfirmPaymentUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        ledger_client: ILedgerClient,
        event_publisher: IOrderEventPublisher,
    ) -> None:
        self.uow_factory = uow_factory
        self.ledger_client = ledger_client
        self.event_publisher = event_publisher
        self.tracer = trace.get_tracer(__name__)

    async def _load(self, *, order_id: UUID) -> Order:
        async with self.uow_factory() as uow:
            order = await uow.order_command_repo.get_by_id(order_id=order_id)
        if not order:
            raise NotFoundError(f'Order {order_id} not found')
        return order

    async def _publish_mint_request(self, *, order: Order) -> None:
        await self.event_publisher.publish_order_paid(event=OrderPaidEvent.from_order(order=order))

    @Logger.io
    async def execute(self, *, order_id: UUID, transaction_hash: str) -> Order:
        """
        Raises:
            PaymentRejectedError: the payment transaction failed on-chain
            LedgerTransientError: the payment is not final yet (retry later)
            ConflictError: the order was paid by a different transaction
        """
        if not transaction_hash or not transaction_hash.strip():
            raise ValidationError('transaction_hash is required')

        with self.tracer.start_as_current_span(
            'use_case.confirm_payment',
            attributes={'order.id': str(order_id), 'ledger.tx': transaction_hash},
        ):
            order = await self._load(order_id=order_id)
            if order.is_payment_replay(transaction_hash=transaction_hash):
                if order.status == OrderStatus.PAID:
                    await self._publish_mint_request(order=order)
                return order

            # Ledger call happens outside any database transaction
            tx_status = await self.ledger_client.get_transaction_status(
                transaction_hash=transaction_hash
            )
            if tx_status == LedgerTxStatus.FAILED:
                raise PaymentRejectedError(transaction_hash=transaction_hash)
            if tx_status == LedgerTxStatus.PENDING:
                raise LedgerTransientError(f'Payment {transaction_hash} is not final yet')

            now = datetime.now(timezone.utc)
            if order.status == OrderStatus.CANCELLED:
                return await self._settle_late_payment(
                    order=order, transaction_hash=transaction_hash, now=now
                )

            async with self.uow_factory() as uow:
                won = await uow.order_command_repo.mark_paid(
                    order_id=order_id,
                    transaction_hash=transaction_hash,
                    paid_at=now,
                    # Watcher picks the order up if the mint request is lost
                    next_attempt_at=now + timedelta(seconds=settings.RECONCILE_INTERVAL_SECONDS),
                )
                await uow.commit()

            current = await self._load(order_id=order_id)
            if not won:
                if current.status == OrderStatus.CANCELLED:
                    # Expired between our read and the UPDATE
                    return await self._settle_late_payment(
                        order=current, transaction_hash=transaction_hash, now=now
                    )
                # Another worker moved the order first; same payment is a replay
                current.is_payment_replay(transaction_hash=transaction_hash)
                return current

            metrics.record_order_transition(status=OrderStatus.PAID)
            Logger.base.info(f'💰 [ORDER] {order_id} paid by {transaction_hash}')
            await self._publish_mint_request(order=current)
            return current

    async def _settle_late_payment(
        self, *, order: Order, transaction_hash: str, now: datetime
    ) -> Order:
        async with self.uow_factory() as uow:
            restocked = await uow.event_inventory_repo.reserve_tickets(
                event_id=order.event_id, quantity=order.quantity
            )
            if restocked:
                won = await uow.order_command_repo.mark_paid_after_cancel(
                    order_id=order.id,
                    transaction_hash=transaction_hash,
                    paid_at=now,
                    next_attempt_at=now + timedelta(seconds=settings.RECONCILE_INTERVAL_SECONDS),
                )
            else:
                won = await uow.order_command_repo.mark_payment_stranded(
                    order_id=order.id,
                    transaction_hash=transaction_hash,
                    paid_at=now,
                    last_error=(
                        f'Refund required: payment {transaction_hash} became final after '
                        f'the order was cancelled and its tickets are no longer available'
                    ),
                )
            if won:
                await uow.commit()

        current = await self._load(order_id=order.id)
        if not won:
            current.is_payment_replay(transaction_hash=transaction_hash)
            return current

        metrics.record_order_transition(status=current.status)
        if not restocked:
            Logger.base.error(
                f'💸 [ORDER] {order.id} paid by {transaction_hash} after cancellation, '
                f'tickets gone, refund required'
            )
            return current

        Logger.base.warning(
            f'💰 [ORDER] {order.id} paid by {transaction_hash} after cancellation, '
            f'tickets re-reserved'
        )
        await self._publish_mint_request(order=current)
        return current
