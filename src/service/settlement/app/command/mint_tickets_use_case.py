"""
Mint Tickets Use Case

Drives a PAID order through MINTING to COMPLETED (or FAILED).

Flow (each numbered step is its own short transaction, ledger calls never run
inside one):
1. Claim: PAID → MINTING (a lost claim just means another worker got there)
2. Mint every unit that has no Ticket row yet; each mint carries the
   deterministic nonce order_id:unit_index so a retry never mints twice
3. Poll finality of pending mint transactions
4. All units confirmed → validate tickets, move inventory to sold, COMPLETED,
   then record the payment split

Transient ledger trouble schedules a retry with backoff; a final failure (or
running out of attempts) fails the order, invalidates its tickets and releases
the reserved inventory in one transaction. The order is never marked COMPLETED
with fewer confirmed tickets than its quantity.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import attrs
from opentelemetry import trace
from uuid_utils.compat import uuid7

from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import (
    ConflictError,
    LedgerFinalError,
    LedgerTransientError,
    NotFoundError,
    UniqueViolationError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.app.command.settle_payment_use_case import SettlePaymentUseCase
from src.service.settlement.app.dto.mint_result import MintResult
from src.service.settlement.app.interface.i_ledger_client import ILedgerClient
from src.service.settlement.domain.entity.event_entity import Event
from src.service.settlement.domain.entity.order_entity import Order
from src.service.settlement.domain.entity.ticket_entity import Ticket
from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus
from src.service.settlement.domain.enum.mint_status import MintStatus
from src.service.settlement.domain.enum.order_status import OrderStatus
from src.service.settlement.domain.exceptions import InvalidStateTransitionError
from src.service.settlement.domain.value_object.mint_request import MintRequest
from src.service.settlement.domain.value_object.retry_policy import RetryPolicy


def _summarize(*, status: OrderStatus, order: Order, tickets: list[Ticket]) -> MintResult:
    return MintResult(
        order_status=status,
        minted_units=len(tickets),
        confirmed_units=sum(1 for t in tickets if t.mint_status == MintStatus.CONFIRMED),
        quantity=order.quantity,
    )


class MintTicketsUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        ledger_client: ILedgerClient,
        settle_payment_use_case: SettlePaymentUseCase,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.uow_factory = uow_factory
        self.ledger_client = ledger_client
        self.settle_payment_use_case = settle_payment_use_case
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.tracer = trace.get_tracer(__name__)

    @Logger.io
    async def execute(self, *, order_id: UUID) -> MintResult:
        """
        Safe to call any number of times, concurrently, for the same order.

        Raises:
            NotFoundError: unknown order or event
            InvalidStateTransitionError: order has not been paid
        """
        with self.tracer.start_as_current_span(
            'use_case.mint_tickets', attributes={'order.id': str(order_id)}
        ):
            order, event, tickets = await self._claim(order_id=order_id)
            if order.status != OrderStatus.MINTING:
                if order.status == OrderStatus.COMPLETED:
                    await self.settle_payment_use_case.execute(order_id=order_id)
                return _summarize(status=order.status, order=order, tickets=tickets)

            try:
                tickets = await self._mint_missing_units(order=order, event=event, tickets=tickets)
                tickets = await self._refresh_finality(tickets=tickets)
            except LedgerFinalError as e:
                return await self._fail(order=order, reason=e.message)
            except LedgerTransientError as e:
                return await self._schedule_retry(order=order, error=e.message)

            failed = [t for t in tickets if t.mint_status == MintStatus.FAILED]
            if failed:
                return await self._fail(
                    order=order,
                    reason=f'Mint transaction {failed[0].mint_transaction_hash} failed on the ledger',
                )
            if any(t.mint_status == MintStatus.PENDING for t in tickets):
                return await self._schedule_retry(order=order, error='Mint transactions not final yet')

            return await self._complete(order=order, tickets=tickets)

    @Logger.io
    async def defer(self, *, order_id: UUID, error: str) -> Optional[MintResult]:
        """
        Count a failed resume as a mint attempt and push the next one back.
        Fails the order once attempts run out; None if it is no longer minting.
        """
        async with self.uow_factory() as uow:
            order = await uow.order_command_repo.get_by_id(order_id=order_id)
        if not order or order.status not in (OrderStatus.PAID, OrderStatus.MINTING):
            return None
        return await self._schedule_retry(order=order, error=error)

    async def _claim(self, *, order_id: UUID) -> tuple[Order, Optional[Event], list[Ticket]]:
        async with self.uow_factory() as uow:
            order = await uow.order_command_repo.get_by_id(order_id=order_id)
            if not order:
                raise NotFoundError(f'Order {order_id} not found')
            if order.status == OrderStatus.PENDING:
                raise InvalidStateTransitionError(
                    entity=f'Order {order_id}', current=order.status, target=OrderStatus.MINTING
                )

            if order.status == OrderStatus.PAID:
                if await uow.order_command_repo.mark_minting(order_id=order_id):
                    await uow.commit()
                    metrics.record_order_transition(status=OrderStatus.MINTING)
                    Logger.base.info(f'🪙 [MINT] Order {order_id} claimed for minting')
                order = await uow.order_command_repo.get_by_id(order_id=order_id) or order

            event = None
            if order.status == OrderStatus.MINTING:
                event = await uow.event_inventory_repo.get_by_id(event_id=order.event_id)
                if not event:
                    raise NotFoundError(f'Event {order.event_id} not found')
            tickets = await uow.ticket_command_repo.list_by_order(order_id=order_id)
        return order, event, tickets

    async def _mint_missing_units(
        self, *, order: Order, event: Optional[Event], tickets: list[Ticket]
    ) -> list[Ticket]:
        assert event is not None
        recorded = {t.unit_index for t in tickets}
        tickets = list(tickets)
        for unit_index in range(order.quantity):
            if unit_index in recorded:
                metrics.record_ticket_mint(result='skipped')
                continue
            tickets.append(await self._mint_unit(order=order, event=event, unit_index=unit_index))
        return sorted(tickets, key=lambda t: t.unit_index)

    async def _mint_unit(self, *, order: Order, event: Event, unit_index: int) -> Ticket:
        # token_id is a display number only; uniqueness lives in the mint address
        token_id = event.tickets_sold + unit_index + 1
        request = MintRequest.for_unit(
            order_id=order.id,
            unit_index=unit_index,
            token_id=token_id,
            event_title=event.title,
            event_date=event.date.isoformat(),
            event_location=event.location,
            creator_wallet=event.organizer_wallet,
        )
        try:
            receipt = await self.ledger_client.mint(nonce=request.nonce, metadata=request.metadata)
        except LedgerTransientError:
            metrics.record_ticket_mint(result='transient_error')
            raise
        except LedgerFinalError:
            metrics.record_ticket_mint(result='final_error')
            raise

        ticket = Ticket(
            id=uuid7(),
            order_id=order.id,
            event_id=order.event_id,
            owner_id=order.user_id,
            unit_index=unit_index,
            token_id=token_id,
            nft_mint_address=receipt.mint_address,
            mint_transaction_hash=receipt.transaction_hash,
            mint_status=MintStatus.PENDING,
            is_valid=False,
        )
        try:
            async with self.uow_factory() as uow:
                ticket = await uow.ticket_command_repo.create(ticket=ticket)
                await uow.commit()
        except UniqueViolationError:
            # Another worker recorded this unit (the ledger returned the same mint for the nonce)
            async with self.uow_factory() as uow:
                existing = await uow.ticket_command_repo.list_by_order(order_id=order.id)
            ticket = next((t for t in existing if t.unit_index == unit_index), None)
            if ticket is None:
                raise ConflictError(
                    f'Mint {receipt.mint_address} for order {order.id} unit {unit_index} '
                    'is already recorded for another ticket'
                )
            metrics.record_ticket_mint(result='skipped')
            return ticket

        metrics.record_ticket_mint(result='submitted')
        Logger.base.info(
            f'🪙 [MINT] Order {order.id} unit {unit_index} → {receipt.mint_address} '
            f'(tx={receipt.transaction_hash})'
        )
        return ticket

    async def _refresh_finality(self, *, tickets: list[Ticket]) -> list[Ticket]:
        updates: dict[UUID, MintStatus] = {}
        for ticket in tickets:
            if ticket.mint_status != MintStatus.PENDING or not ticket.mint_transaction_hash:
                continue
            tx_status = await self.ledger_client.get_transaction_status(
                transaction_hash=ticket.mint_transaction_hash
            )
            if tx_status != LedgerTxStatus.PENDING:
                updates[ticket.id] = MintStatus(tx_status.value)

        if updates:
            async with self.uow_factory() as uow:
                for ticket_id, mint_status in updates.items():
                    await uow.ticket_command_repo.update_mint_status(
                        ticket_id=ticket_id, mint_status=mint_status
                    )
                await uow.commit()

        return [attrs.evolve(t, mint_status=updates.get(t.id, t.mint_status)) for t in tickets]

    async def _schedule_retry(self, *, order: Order, error: str) -> MintResult:
        attempts = order.mint_attempts + 1
        if self.retry_policy.is_exhausted(attempts):
            return await self._fail(
                order=order, reason=f'Gave up after {attempts} mint attempts: {error}'
            )

        next_attempt_at = self.retry_policy.next_attempt_at(
            attempt=attempts, now=datetime.now(timezone.utc)
        )
        async with self.uow_factory() as uow:
            await uow.order_command_repo.schedule_next_attempt(
                order_id=order.id,
                mint_attempts=attempts,
                next_attempt_at=next_attempt_at,
                last_error=error,
            )
            await uow.commit()
            tickets = await uow.ticket_command_repo.list_by_order(order_id=order.id)

        Logger.base.warning(
            f'⏳ [MINT] Order {order.id} attempt {attempts} incomplete ({error}), '
            f'retry at {next_attempt_at.isoformat()}'
        )
        return _summarize(status=OrderStatus.MINTING, order=order, tickets=tickets)

    async def _fail(self, *, order: Order, reason: str) -> MintResult:
        async with self.uow_factory() as uow:
            failed = await uow.order_command_repo.mark_failed(order_id=order.id, last_error=reason)
            if failed:
                await uow.ticket_command_repo.invalidate_for_order(order_id=order.id)
                await uow.event_inventory_repo.release_tickets(
                    event_id=order.event_id, quantity=order.quantity
                )
                await uow.commit()
            current = await uow.order_command_repo.get_by_id(order_id=order.id) or order
            tickets = await uow.ticket_command_repo.list_by_order(order_id=order.id)

        if failed:
            metrics.record_order_transition(status=OrderStatus.FAILED)
            Logger.base.error(f'❌ [MINT] Order {order.id} failed: {reason}')
        return _summarize(status=current.status, order=order, tickets=tickets)

    async def _complete(self, *, order: Order, tickets: list[Ticket]) -> MintResult:
        confirmed = [t for t in tickets if t.mint_status == MintStatus.CONFIRMED]
        if len({t.unit_index for t in confirmed}) != order.quantity:
            raise ConflictError(
                f'Order {order.id} has {len(confirmed)} confirmed tickets, expected {order.quantity}'
            )

        async with self.uow_factory() as uow:
            completed = await uow.order_command_repo.mark_completed(
                order_id=order.id,
                nft_mint_address=confirmed[0].nft_mint_address,
                completed_at=datetime.now(timezone.utc),
            )
            if completed:
                validated = await uow.ticket_command_repo.validate_for_order(order_id=order.id)
                if validated != order.quantity:
                    raise ConflictError(
                        f'Order {order.id} validated {validated} tickets, expected {order.quantity}'
                    )
                await uow.event_inventory_repo.record_sold(
                    event_id=order.event_id, quantity=order.quantity
                )
                await uow.commit()
            current = await uow.order_command_repo.get_by_id(order_id=order.id) or order

        if completed:
            metrics.record_order_transition(status=OrderStatus.COMPLETED)
            Logger.base.info(f'✅ [MINT] Order {order.id} completed ({order.quantity} tickets)')
        if current.status == OrderStatus.COMPLETED:
            await self.settle_payment_use_case.execute(order_id=order.id)
        return _summarize(status=current.status, order=order, tickets=tickets)
