"""
Unit tests for lost conditional-UPDATE races

A second worker can move an entity between our read and our UPDATE. The
repository then reports False and the use case must re-read and classify the
outcome instead of overwriting it.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import attrs
import pytest
from uuid_utils.compat import uuid7

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import ConflictError
from src.service.settlement.app.command.cancel_listing_use_case import CancelListingUseCase
from src.service.settlement.app.command.confirm_payment_use_case import ConfirmPaymentUseCase
from src.service.settlement.app.command.fulfill_listing_use_case import FulfillListingUseCase
from src.service.settlement.app.dto.ledger_dto import TransferRecord
from src.service.settlement.domain.entity.listing_entity import Listing
from src.service.settlement.domain.entity.order_entity import Order
from src.service.settlement.domain.entity.user_entity import User
from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus
from src.service.settlement.domain.enum.listing_status import ListingStatus
from src.service.settlement.domain.enum.order_status import OrderStatus
from src.service.settlement.domain.exceptions import (
    ListingAlreadySoldError,
    ListingSettlementInProgressError,
)


class MockUnitOfWork(AbstractUnitOfWork):
    def __init__(self) -> None:
        self.order_command_repo = AsyncMock()
        self.listing_command_repo = AsyncMock()
        self.user_query_repo = AsyncMock()
        self.ticket_command_repo = AsyncMock()
        self.commits = 0

    async def _commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass


@pytest.fixture
def uow() -> MockUnitOfWork:
    return MockUnitOfWork()


@pytest.mark.unit
class TestConfirmPaymentRace:
    @pytest.fixture
    def pending_order(self) -> Order:
        return Order.create(event_id=uuid7(), user_id=uuid7(), quantity=1, unit_price=Decimal('10'))

    @pytest.fixture
    def use_case(self, uow: MockUnitOfWork) -> ConfirmPaymentUseCase:
        ledger = AsyncMock()
        ledger.get_transaction_status = AsyncMock(return_value=LedgerTxStatus.CONFIRMED)
        return ConfirmPaymentUseCase(
            uow_factory=lambda: uow, ledger_client=ledger, event_publisher=AsyncMock()
        )

    @pytest.mark.asyncio
    async def test_lost_to_same_payment_is_a_replay(
        self, uow: MockUnitOfWork, use_case: ConfirmPaymentUseCase, pending_order: Order
    ) -> None:
        # Arrange
        paid = attrs.evolve(pending_order, status=OrderStatus.PAID, transaction_hash='tx1')
        uow.order_command_repo.get_by_id = AsyncMock(side_effect=[pending_order, paid])
        uow.order_command_repo.mark_paid = AsyncMock(return_value=False)

        # Act
        result = await use_case.execute(order_id=pending_order.id, transaction_hash='tx1')

        # Assert
        assert result.status == OrderStatus.PAID
        # The winner already published the mint request
        use_case.event_publisher.publish_order_paid.assert_not_awaited()  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_lost_to_other_payment_conflicts(
        self, uow: MockUnitOfWork, use_case: ConfirmPaymentUseCase, pending_order: Order
    ) -> None:
        paid = attrs.evolve(pending_order, status=OrderStatus.PAID, transaction_hash='tx-other')
        uow.order_command_repo.get_by_id = AsyncMock(side_effect=[pending_order, paid])
        uow.order_command_repo.mark_paid = AsyncMock(return_value=False)

        with pytest.raises(ConflictError, match='tx-other'):
            await use_case.execute(order_id=pending_order.id, transaction_hash='tx1')

    @pytest.mark.asyncio
    async def test_won_race_publishes_mint_request(
        self, uow: MockUnitOfWork, use_case: ConfirmPaymentUseCase, pending_order: Order
    ) -> None:
        paid = attrs.evolve(pending_order, status=OrderStatus.PAID, transaction_hash='tx1')
        uow.order_command_repo.get_by_id = AsyncMock(side_effect=[pending_order, paid])
        uow.order_command_repo.mark_paid = AsyncMock(return_value=True)

        await use_case.execute(order_id=pending_order.id, transaction_hash='tx1')

        assert uow.commits == 1
        event = use_case.event_publisher.publish_order_paid.await_args.kwargs['event']  # type: ignore[attr-defined]
        assert event.order_id == pending_order.id
        assert event.transaction_hash == 'tx1'


@pytest.mark.unit
class TestCancelListingRace:
    @pytest.fixture
    def active_listing(self) -> Listing:
        return Listing.create(
            ticket_id=uuid7(),
            nft_mint_address='MintAddr1',
            seller_id=uuid7(),
            price=Decimal('25'),
            original_price=Decimal('10'),
            seller_signature='sig',
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ('winner_status', 'expected_error'),
        [
            (ListingStatus.SOLD, ListingAlreadySoldError),
            (ListingStatus.AWAITING_CONFIRMATION, ListingSettlementInProgressError),
        ],
    )
    async def test_buyer_got_there_first(
        self, uow: MockUnitOfWork, active_listing: Listing, winner_status, expected_error
    ) -> None:
        # Arrange
        moved = attrs.evolve(active_listing, status=winner_status)
        uow.listing_command_repo.get_by_id = AsyncMock(side_effect=[active_listing, moved])
        uow.listing_command_repo.mark_cancelled = AsyncMock(return_value=False)
        use_case = CancelListingUseCase(uow_factory=lambda: uow)

        # Act / Assert
        with pytest.raises(expected_error):
            await use_case.execute(listing_id=active_listing.id, seller_id=active_listing.seller_id)
        assert uow.commits == 0

    @pytest.mark.asyncio
    async def test_concurrent_cancel_is_a_noop(
        self, uow: MockUnitOfWork, active_listing: Listing
    ) -> None:
        cancelled = attrs.evolve(active_listing, status=ListingStatus.CANCELLED)
        uow.listing_command_repo.get_by_id = AsyncMock(side_effect=[active_listing, cancelled])
        uow.listing_command_repo.mark_cancelled = AsyncMock(return_value=False)
        use_case = CancelListingUseCase(uow_factory=lambda: uow)

        result = await use_case.execute(
            listing_id=active_listing.id, seller_id=active_listing.seller_id
        )

        assert result.status == ListingStatus.CANCELLED


@pytest.mark.unit
class TestFulfillListingRace:
    SELLER = User(id=uuid7(), wallet_address='SellerWallet')
    BUYER = User(id=uuid7(), wallet_address='BuyerWallet')

    @pytest.fixture
    def active_listing(self) -> Listing:
        return Listing.create(
            ticket_id=uuid7(),
            nft_mint_address='MintAddr1',
            seller_id=self.SELLER.id,
            price=Decimal('25'),
            original_price=Decimal('10'),
            seller_signature='sig',
        )

    @pytest.fixture
    def use_case(self, uow: MockUnitOfWork) -> FulfillListingUseCase:
        ledger = AsyncMock()
        ledger.get_transaction_status = AsyncMock(return_value=LedgerTxStatus.CONFIRMED)
        ledger.get_transfer = AsyncMock(
            return_value=TransferRecord(
                transaction_hash='tx1',
                mint_address='MintAddr1',
                from_wallet='SellerWallet',
                to_wallet='BuyerWallet',
                price=Decimal('25'),
            )
        )
        uow.user_query_repo.get_by_id = AsyncMock(side_effect=[self.BUYER, self.SELLER])
        return FulfillListingUseCase(uow_factory=lambda: uow, ledger_client=ledger)

    @pytest.mark.asyncio
    async def test_lost_to_other_buyer_keeps_ownership(
        self, uow: MockUnitOfWork, use_case: FulfillListingUseCase, active_listing: Listing
    ) -> None:
        # Arrange
        sold = attrs.evolve(
            active_listing, status=ListingStatus.SOLD, sold_to=uuid7(), transaction_hash='tx-other'
        )
        uow.listing_command_repo.get_by_id = AsyncMock(side_effect=[active_listing, sold])
        uow.listing_command_repo.mark_sold = AsyncMock(return_value=False)

        # Act / Assert
        with pytest.raises(ListingAlreadySoldError):
            await use_case.execute(
                listing_id=active_listing.id, buyer_id=self.BUYER.id, transaction_hash='tx1'
            )
        uow.ticket_command_repo.transfer_ownership.assert_not_awaited()
        assert uow.commits == 0

    @pytest.mark.asyncio
    async def test_lost_to_same_sale_is_a_replay(
        self, uow: MockUnitOfWork, use_case: FulfillListingUseCase, active_listing: Listing
    ) -> None:
        sold = attrs.evolve(
            active_listing, status=ListingStatus.SOLD, sold_to=self.BUYER.id, transaction_hash='tx1'
        )
        uow.listing_command_repo.get_by_id = AsyncMock(side_effect=[active_listing, sold])
        uow.listing_command_repo.mark_sold = AsyncMock(return_value=False)

        result = await use_case.execute(
            listing_id=active_listing.id, buyer_id=self.BUYER.id, transaction_hash='tx1'
        )

        assert result.status == ListingStatus.SOLD
        uow.ticket_command_repo.transfer_ownership.assert_not_awaited()
        assert uow.commits == 0
