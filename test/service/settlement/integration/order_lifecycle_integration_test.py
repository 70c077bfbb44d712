"""
Integration tests for the primary sale lifecycle

submit → confirm payment → mint → complete → settle, on the real unit of work.
Covers inventory conservation, mint idempotency across retries, failure
compensation and the payment-window expiry sweep.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.platform.exception.exceptions import (
    ConflictError,
    LedgerFinalError,
    LedgerTransientError,
    UnauthorizedActorError,
    ValidationError,
)
from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus
from src.service.settlement.domain.enum.mint_status import MintStatus
from src.service.settlement.domain.enum.order_status import OrderStatus
from src.service.settlement.domain.enum.platform_config_key import PlatformConfigKey
from src.service.settlement.domain.exceptions import (
    InsufficientInventoryError,
    InvalidStateTransitionError,
    PaymentRejectedError,
)
from src.service.settlement.domain.value_object.mint_request import mint_nonce
from test.service.settlement.conftest import EVENT_CAPACITY, ORGANIZER_WALLET
from test.service.settlement.integration.order_flow import (
    buy_tickets,
    load_event,
    load_order,
    load_tickets,
    place_and_pay,
)


def _far_future() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=1)


@pytest.mark.integration
class TestSubmitOrder:
    @pytest.mark.asyncio
    async def test_submit_reserves_inventory(self, services, seed, uow_factory) -> None:
        # Act
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=3
        )

        # Assert
        assert order.status == OrderStatus.PENDING
        assert order.total_price == Decimal('30')
        assert order.expires_at is not None
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY - 3
        assert event.tickets_sold == 0

    @pytest.mark.asyncio
    async def test_invalid_quantity_leaves_inventory_untouched(
        self, services, seed, uow_factory
    ) -> None:
        with pytest.raises(ValidationError):
            await services.submit_order.execute(
                event_id=seed.event_id, user_id=seed.buyer_id, quantity=0
            )

        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY

    @pytest.mark.asyncio
    async def test_sold_out_event_rejects_order(self, services, seed, uow_factory) -> None:
        # Arrange: take the whole capacity in max-size orders
        for _ in range(EVENT_CAPACITY // 10):
            await services.submit_order.execute(
                event_id=seed.event_id, user_id=seed.buyer_id, quantity=10
            )

        # Act & Assert
        with pytest.raises(InsufficientInventoryError):
            await services.submit_order.execute(
                event_id=seed.event_id, user_id=seed.buyer_id, quantity=1
            )
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == 0


@pytest.mark.integration
class TestConfirmPayment:
    @pytest.mark.asyncio
    async def test_confirm_moves_order_to_paid_and_requests_mint(self, services, seed) -> None:
        order = await place_and_pay(services, seed, quantity=2, transaction_hash='txpay-a')

        assert order.status == OrderStatus.PAID
        assert order.transaction_hash == 'txpay-a'
        assert order.paid_at is not None
        assert [e.order_id for e in services.publisher.published] == [order.id]

    @pytest.mark.asyncio
    async def test_replayed_payment_is_a_noop(self, services, seed, uow_factory) -> None:
        order = await place_and_pay(services, seed, transaction_hash='txpay-a')

        again = await services.confirm_payment.execute(
            order_id=order.id, transaction_hash='txpay-a'
        )

        assert again.status == OrderStatus.PAID
        assert again.paid_at == order.paid_at
        # Mint request re-published while still PAID; minting is idempotent
        assert len(services.publisher.published) == 2
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY - 1

    @pytest.mark.asyncio
    async def test_payment_with_different_transaction_conflicts(self, services, seed) -> None:
        order = await place_and_pay(services, seed, transaction_hash='txpay-a')

        with pytest.raises(ConflictError):
            await services.confirm_payment.execute(order_id=order.id, transaction_hash='txpay-b')

    @pytest.mark.asyncio
    async def test_pending_payment_is_retryable(self, services, seed, uow_factory) -> None:
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=1
        )
        services.ledger.set_status('txpay-slow', LedgerTxStatus.PENDING)

        with pytest.raises(LedgerTransientError):
            await services.confirm_payment.execute(order_id=order.id, transaction_hash='txpay-slow')

        assert (await load_order(uow_factory, order_id=order.id)).status == OrderStatus.PENDING
        assert services.publisher.published == []

    @pytest.mark.asyncio
    async def test_failed_payment_is_rejected(self, services, seed, uow_factory) -> None:
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=1
        )
        services.ledger.set_status('txpay-bad', LedgerTxStatus.FAILED)

        with pytest.raises(PaymentRejectedError):
            await services.confirm_payment.execute(order_id=order.id, transaction_hash='txpay-bad')

        assert (await load_order(uow_factory, order_id=order.id)).status == OrderStatus.PENDING


@pytest.mark.integration
class TestCancelOrder:
    @pytest.mark.asyncio
    async def test_cancel_releases_inventory_once(self, services, seed, uow_factory) -> None:
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=4
        )

        cancelled = await services.cancel_order.execute(order_id=order.id, user_id=seed.buyer_id)
        again = await services.cancel_order.execute(order_id=order.id, user_id=seed.buyer_id)

        assert cancelled.status == OrderStatus.CANCELLED
        assert again.status == OrderStatus.CANCELLED
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY

    @pytest.mark.asyncio
    async def test_only_buyer_can_cancel(self, services, seed) -> None:
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=1
        )

        with pytest.raises(UnauthorizedActorError):
            await services.cancel_order.execute(order_id=order.id, user_id=seed.resale_buyer_id)

    @pytest.mark.asyncio
    async def test_paid_order_cannot_be_cancelled(self, services, seed) -> None:
        order = await place_and_pay(services, seed)

        with pytest.raises(InvalidStateTransitionError):
            await services.cancel_order.execute(order_id=order.id, user_id=seed.buyer_id)

    @pytest.mark.asyncio
    async def test_final_payment_outranks_buyer_cancel(self, services, seed, uow_factory) -> None:
        # Arrange
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=2
        )
        await services.cancel_order.execute(order_id=order.id, user_id=seed.buyer_id)

        # Act
        paid = await services.confirm_payment.execute(
            order_id=order.id, transaction_hash='txpay-late'
        )

        # Assert
        assert paid.status == OrderStatus.PAID
        assert paid.transaction_hash == 'txpay-late'
        assert [e.order_id for e in services.publisher.published] == [order.id]
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY - 2

    @pytest.mark.asyncio
    async def test_failed_payment_leaves_cancelled_order_alone(
        self, services, seed, uow_factory
    ) -> None:
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=1
        )
        await services.cancel_order.execute(order_id=order.id, user_id=seed.buyer_id)
        services.ledger.set_status('txpay-late', LedgerTxStatus.FAILED)

        with pytest.raises(PaymentRejectedError):
            await services.confirm_payment.execute(order_id=order.id, transaction_hash='txpay-late')

        assert (await load_order(uow_factory, order_id=order.id)).status == OrderStatus.CANCELLED
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY


@pytest.mark.integration
class TestMintTickets:
    @pytest.mark.asyncio
    async def test_full_flow_completes_and_settles(
        self, services, seed, uow_factory, set_platform_config
    ) -> None:
        # Arrange
        await set_platform_config(PlatformConfigKey.PLATFORM_FEE_PERCENTAGE, '0.1')

        # Act
        order, tickets = await buy_tickets(services, seed, quantity=3)

        # Assert: order
        completed = await load_order(uow_factory, order_id=order.id)
        assert completed.status == OrderStatus.COMPLETED
        assert completed.completed_at is not None
        assert completed.nft_mint_address == tickets[0].nft_mint_address

        # Assert: exactly quantity valid tickets, one per unit
        assert [t.unit_index for t in tickets] == [0, 1, 2]
        assert [t.token_id for t in tickets] == [1, 2, 3]
        assert all(t.is_valid and t.mint_status == MintStatus.CONFIRMED for t in tickets)
        assert all(t.owner_id == seed.buyer_id for t in tickets)
        assert len({t.nft_mint_address for t in tickets}) == 3

        # Assert: inventory moved from reserved to sold
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY - 3
        assert event.tickets_sold == 3

        # Assert: revenue split
        async with uow_factory() as uow:
            distribution = await uow.payment_distribution_repo.get_by_order(order_id=order.id)
        assert distribution is not None
        assert distribution.total_amount == Decimal('30')
        assert distribution.platform_share == Decimal('3')
        assert distribution.organizer_share == Decimal('27')
        assert distribution.organizer_wallet == ORGANIZER_WALLET
        assert distribution.transaction_hash == 'txpayment0001'

    @pytest.mark.asyncio
    async def test_mint_replay_is_a_noop(self, services, seed, uow_factory) -> None:
        order, tickets = await buy_tickets(services, seed, quantity=2)
        calls_before = len(services.ledger.mint_calls)

        result = await services.mint_tickets.execute(order_id=order.id)

        assert result.is_complete
        assert result.confirmed_units == 2
        assert len(services.ledger.mint_calls) == calls_before
        assert len(await load_tickets(uow_factory, order_id=order.id)) == 2
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_sold == 2

    @pytest.mark.asyncio
    async def test_retry_after_partial_mint_never_mints_twice(
        self, services, seed, uow_factory
    ) -> None:
        # Arrange: second unit hits a node outage on the first attempt
        order = await place_and_pay(services, seed, quantity=3)
        services.ledger.mint_failures[mint_nonce(order_id=order.id, unit_index=1)] = (
            LedgerTransientError('node unavailable')
        )

        # Act: first attempt stops after unit 0
        first = await services.mint_tickets.execute(order_id=order.id)

        # Assert
        assert first.order_status == OrderStatus.MINTING
        assert first.minted_units == 1
        retrying = await load_order(uow_factory, order_id=order.id)
        assert retrying.mint_attempts == 1
        assert retrying.next_attempt_at is not None
        assert retrying.last_error == 'node unavailable'

        # Act: the sweep resumes the order
        report = await services.reconcile.run_once(now=_far_future())

        # Assert
        assert report.completed_orders == 1
        nonces = services.ledger.mint_calls
        assert nonces.count(mint_nonce(order_id=order.id, unit_index=0)) == 1
        assert nonces.count(mint_nonce(order_id=order.id, unit_index=2)) == 1
        tickets = await load_tickets(uow_factory, order_id=order.id)
        assert [t.unit_index for t in tickets] == [0, 1, 2]
        assert (await load_order(uow_factory, order_id=order.id)).status == OrderStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_final_mint_error_fails_order_and_releases_inventory(
        self, services, seed, uow_factory
    ) -> None:
        order = await place_and_pay(services, seed, quantity=2)
        services.ledger.mint_failures[mint_nonce(order_id=order.id, unit_index=1)] = (
            LedgerFinalError('metadata rejected')
        )

        result = await services.mint_tickets.execute(order_id=order.id)

        assert result.order_status == OrderStatus.FAILED
        failed = await load_order(uow_factory, order_id=order.id)
        assert failed.last_error == 'metadata rejected'
        tickets = await load_tickets(uow_factory, order_id=order.id)
        assert tickets and not any(t.is_valid for t in tickets)
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY
        assert event.tickets_sold == 0

    @pytest.mark.asyncio
    async def test_pending_finality_completes_on_ledger_callback(
        self, services, seed, uow_factory
    ) -> None:
        # Arrange: mints submitted but not final yet
        services.ledger.set_mint_status(LedgerTxStatus.PENDING)
        order = await place_and_pay(services, seed, quantity=2)

        pending = await services.mint_tickets.execute(order_id=order.id)
        assert pending.order_status == OrderStatus.MINTING
        assert pending.minted_units == 2
        assert pending.confirmed_units == 0

        # Act: ledger reports the mint final
        services.ledger.set_mint_status(LedgerTxStatus.CONFIRMED)
        tickets = await load_tickets(uow_factory, order_id=order.id)
        report = await services.reconcile.reconcile_transaction(
            transaction_hash=tickets[0].mint_transaction_hash
        )

        # Assert
        assert report.completed_orders == 1
        assert (await load_order(uow_factory, order_id=order.id)).status == OrderStatus.COMPLETED
        assert len(services.ledger.receipts) == 2

    @pytest.mark.asyncio
    async def test_mint_gives_up_after_max_attempts(self, services, seed, uow_factory) -> None:
        services.ledger.set_mint_status(LedgerTxStatus.PENDING)
        order = await place_and_pay(services, seed, quantity=1)

        # retry_policy fixture allows 3 attempts
        results = [await services.mint_tickets.execute(order_id=order.id) for _ in range(3)]

        assert [r.order_status for r in results] == [
            OrderStatus.MINTING,
            OrderStatus.MINTING,
            OrderStatus.FAILED,
        ]
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY

    @pytest.mark.asyncio
    async def test_mint_address_owned_by_another_order_conflicts(
        self, services, seed, uow_factory
    ) -> None:
        # Arrange: the ledger hands the second order a mint it already gave the first
        first, _ = await buy_tickets(services, seed, quantity=1)
        second = await place_and_pay(services, seed, quantity=1, transaction_hash='txpayment0002')
        services.ledger.receipts[mint_nonce(order_id=second.id, unit_index=0)] = (
            services.ledger.receipts[mint_nonce(order_id=first.id, unit_index=0)]
        )

        # Act / Assert
        with pytest.raises(ConflictError, match='already recorded for another ticket'):
            await services.mint_tickets.execute(order_id=second.id)
        assert await load_tickets(uow_factory, order_id=second.id) == []

    @pytest.mark.asyncio
    async def test_unpaid_order_cannot_be_minted(self, services, seed) -> None:
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=1
        )

        with pytest.raises(InvalidStateTransitionError):
            await services.mint_tickets.execute(order_id=order.id)
        assert services.ledger.mint_calls == []


@pytest.mark.integration
class TestSettlePayment:
    @pytest.mark.asyncio
    async def test_event_without_organizer_pays_platform_only(
        self, services, seed, uow_factory
    ) -> None:
        order = await place_and_pay(services, seed, event_id=seed.unorganized_event_id)
        await services.mint_tickets.execute(order_id=order.id)

        async with uow_factory() as uow:
            distribution = await uow.payment_distribution_repo.get_by_order(order_id=order.id)
        assert distribution is not None
        assert distribution.platform_share == Decimal('10')
        assert distribution.organizer_share == Decimal('0')
        assert distribution.organizer_wallet is None

    @pytest.mark.asyncio
    async def test_settle_is_idempotent(self, services, seed) -> None:
        order, _ = await buy_tickets(services, seed, quantity=1)

        first = await services.settle_payment.execute(order_id=order.id)
        second = await services.settle_payment.execute(order_id=order.id)

        assert first.id == second.id
        assert first.platform_share + first.organizer_share == first.total_amount

    @pytest.mark.asyncio
    async def test_unfinished_order_cannot_be_settled(self, services, seed) -> None:
        order = await place_and_pay(services, seed)

        with pytest.raises(InvalidStateTransitionError):
            await services.settle_payment.execute(order_id=order.id)

    @pytest.mark.asyncio
    async def test_sweep_settles_completed_order_missing_split(
        self, services, seed, uow_factory, monkeypatch
    ) -> None:
        # Arrange: settlement crashes right after completion
        monkeypatch.setattr(
            services.mint_tickets,
            'settle_payment_use_case',
            AsyncMock(execute=AsyncMock(side_effect=ValidationError('wallet misconfigured'))),
        )
        order = await place_and_pay(services, seed, quantity=1)
        with pytest.raises(ValidationError):
            await services.mint_tickets.execute(order_id=order.id)
        monkeypatch.undo()

        # Act
        report = await services.reconcile.run_once(now=_far_future())

        # Assert
        assert report.settled_orders == 1
        async with uow_factory() as uow:
            assert await uow.payment_distribution_repo.get_by_order(order_id=order.id)


@pytest.mark.integration
class TestExpiry:
    @pytest.mark.asyncio
    async def test_sweep_expires_unpaid_orders(self, services, seed, uow_factory) -> None:
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=5
        )

        report = await services.reconcile.run_once(now=_far_future())

        assert report.expired_orders == 1
        assert (await load_order(uow_factory, order_id=order.id)).status == OrderStatus.CANCELLED
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY

    @pytest.mark.asyncio
    async def test_order_within_window_is_kept(self, services, seed, uow_factory) -> None:
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=1
        )

        report = await services.reconcile.run_once()

        assert report.expired_orders == 0
        assert (await load_order(uow_factory, order_id=order.id)).status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_payment_final_after_expiry_is_honoured(
        self, services, seed, uow_factory
    ) -> None:
        # Arrange: the buyer paid on-chain but the signal arrives after the sweep
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=3
        )
        services.ledger.set_status('txpay', LedgerTxStatus.CONFIRMED)
        await services.reconcile.run_once(now=_far_future())

        # Act
        paid = await services.confirm_payment.execute(order_id=order.id, transaction_hash='txpay')
        await services.mint_tickets.execute(order_id=order.id)

        # Assert
        assert paid.status == OrderStatus.PAID
        completed = await load_order(uow_factory, order_id=order.id)
        assert completed.status == OrderStatus.COMPLETED
        assert len(await load_tickets(uow_factory, order_id=order.id)) == 3
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY - 3
        assert event.tickets_sold == 3

    @pytest.mark.asyncio
    async def test_payment_after_expiry_without_stock_records_refund(
        self, services, seed, uow_factory
    ) -> None:
        order = await services.submit_order.execute(
            event_id=seed.event_id, user_id=seed.buyer_id, quantity=2
        )
        await services.reconcile.run_once(now=_far_future())
        async with uow_factory() as uow:
            assert await uow.event_inventory_repo.reserve_tickets(
                event_id=seed.event_id, quantity=EVENT_CAPACITY
            )
            await uow.commit()

        stranded = await services.confirm_payment.execute(
            order_id=order.id, transaction_hash='txpay'
        )
        again = await services.confirm_payment.execute(order_id=order.id, transaction_hash='txpay')

        assert stranded.status == OrderStatus.FAILED
        assert stranded.transaction_hash == 'txpay'
        assert stranded.paid_at is not None
        assert stranded.last_error is not None and 'Refund required' in stranded.last_error
        assert again.status == OrderStatus.FAILED
        assert services.publisher.published == []
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == 0


@pytest.mark.integration
class TestResumeBackoff:
    @pytest.mark.asyncio
    async def test_order_that_keeps_erroring_fails_after_max_attempts(
        self, services, seed, uow_factory, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Arrange
        order = await place_and_pay(services, seed, quantity=2)
        monkeypatch.setattr(
            services.mint_tickets,
            'execute',
            AsyncMock(side_effect=ConflictError('ticket rows out of sync')),
        )

        # Act
        first = await services.reconcile.run_once(now=_far_future())
        after_first = await load_order(uow_factory, order_id=order.id)
        rest = [await services.reconcile.run_once(now=_far_future()) for _ in range(2)]

        # Assert
        assert first.errors == 1
        assert after_first.status == OrderStatus.PAID
        assert after_first.mint_attempts == 1
        assert after_first.last_error == 'ticket rows out of sync'
        assert [r.failed_orders for r in [first, *rest]] == [0, 0, 1]
        failed = await load_order(uow_factory, order_id=order.id)
        assert failed.status == OrderStatus.FAILED
        event = await load_event(uow_factory, event_id=seed.event_id)
        assert event.tickets_available == EVENT_CAPACITY
