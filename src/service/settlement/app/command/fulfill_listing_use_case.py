"""
Fulfill Listing Use Case

Records a secondary sale once the buyer's transfer transaction is final and
verified against the listing. Marking the listing SOLD, moving ticket
ownership and recording the resale split happen in one transaction, so the
marketplace never shows a SOLD listing whose ticket still belongs to the seller.

A sale that is still pending on the ledger parks the listing in
AWAITING_CONFIRMATION; the reconciliation watcher re-checks it with backoff.

On-chain finality outranks an off-chain cancel: a verified transfer completes
the sale even when the seller cancelled the listing meanwhile, and any listing
the seller opened again for the same NFT is cancelled with it.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from opentelemetry import trace

from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import ConflictError, LedgerFinalError, NotFoundError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.app.command.platform_config_resolver import (
    resolve_platform_wallet,
    resolve_resale_fee_rate,
)
from src.service.settlement.app.interface.i_ledger_client import ILedgerClient
from src.service.settlement.domain.entity.listing_entity import Listing
from src.service.settlement.domain.entity.payment_distribution_entity import ResaleDistribution
from src.service.settlement.domain.entity.user_entity import User
from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus
from src.service.settlement.domain.enum.listing_status import ListingStatus
from src.service.settlement.domain.exceptions import (
    InvalidStateTransitionError,
    ListingAlreadySoldError,
    ListingSettlementInProgressError,
    TransferMismatchError,
)
from src.service.settlement.domain.value_object.money import RevenueSplit, to_amount
from src.service.settlement.domain.value_object.retry_policy import RetryPolicy


class FulfillListingUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        ledger_client: ILedgerClient,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.uow_factory = uow_factory
        self.ledger_client = ledger_client
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.tracer = trace.get_tracer(__name__)

    @Logger.io
    async def execute(self, *, listing_id: UUID, buyer_id: UUID, transaction_hash: str) -> Listing:
        """
        Returns the listing as SOLD, or AWAITING_CONFIRMATION while the
        transaction is not final.

        Raises:
            NotFoundError: unknown listing or user
            ValidationError: seller buying their own listing
            ListingAlreadySoldError: sold through another transaction
            ListingSettlementInProgressError: another sale is awaiting finality
            InvalidStateTransitionError: listing was cancelled and the sale is not final
            TransferMismatchError: the transaction does not pay for this listing
            LedgerFinalError: the transaction failed on-chain
            LedgerTransientError: ledger unavailable, retry later
        """
        with self.tracer.start_as_current_span(
            'use_case.fulfill_listing',
            attributes={
                'listing.id': str(listing_id),
                'listing.buyer_id': str(buyer_id),
                'ledger.tx': transaction_hash,
            },
        ):
            async with self.uow_factory() as uow:
                listing = await uow.listing_command_repo.get_by_id(listing_id=listing_id)
                if not listing:
                    raise NotFoundError(f'Listing {listing_id} not found')
                if listing.is_sale_replay(buyer_id=buyer_id, transaction_hash=transaction_hash):
                    return listing
                buyer = await uow.user_query_repo.get_by_id(user_id=buyer_id)
                if not buyer:
                    raise NotFoundError(f'User {buyer_id} not found')
                seller = await uow.user_query_repo.get_by_id(user_id=listing.seller_id)
                if not seller:
                    raise NotFoundError(f'User {listing.seller_id} not found')

            if (
                listing.status == ListingStatus.AWAITING_CONFIRMATION
                and listing.pending_transaction_hash != transaction_hash
            ):
                raise ListingSettlementInProgressError(listing_id=listing_id)

            tx_status = await self.ledger_client.get_transaction_status(
                transaction_hash=transaction_hash
            )
            if tx_status == LedgerTxStatus.PENDING:
                listing.ensure_can_await_sale()
                return await self._await_confirmation(
                    listing=listing, buyer_id=buyer_id, transaction_hash=transaction_hash
                )
            if tx_status == LedgerTxStatus.FAILED:
                await self._release_pending(listing=listing, transaction_hash=transaction_hash)
                raise LedgerFinalError(f'Sale transaction {transaction_hash} failed on the ledger')

            try:
                await self._verify_transfer(
                    listing=listing, seller=seller, buyer=buyer, transaction_hash=transaction_hash
                )
            except TransferMismatchError:
                await self._release_pending(listing=listing, transaction_hash=transaction_hash)
                raise

            return await self._record_sale(
                listing=listing, seller=seller, buyer_id=buyer_id, transaction_hash=transaction_hash
            )

    async def _verify_transfer(
        self, *, listing: Listing, seller: User, buyer: User, transaction_hash: str
    ) -> None:
        record = await self.ledger_client.get_transfer(transaction_hash=transaction_hash)
        if record is None:
            raise TransferMismatchError(f'Transaction {transaction_hash} is not an NFT transfer')
        if record.mint_address != listing.nft_mint_address:
            raise TransferMismatchError(
                f'Transaction {transaction_hash} moved {record.mint_address}, '
                f'listing is for {listing.nft_mint_address}'
            )
        if not seller.wallet_address or record.from_wallet != seller.wallet_address:
            raise TransferMismatchError(f'Transaction {transaction_hash} is not from the seller')
        if not buyer.wallet_address or record.to_wallet != buyer.wallet_address:
            raise TransferMismatchError(f'Transaction {transaction_hash} is not to the buyer')
        if to_amount(record.price) != listing.price:
            raise TransferMismatchError(
                f'Transaction {transaction_hash} paid {record.price}, listing price is {listing.price}'
            )

    async def _await_confirmation(
        self, *, listing: Listing, buyer_id: UUID, transaction_hash: str
    ) -> Listing:
        if listing.status == ListingStatus.AWAITING_CONFIRMATION:
            # Same transaction, the watcher keeps polling it
            return listing

        async with self.uow_factory() as uow:
            parked = await uow.listing_command_repo.mark_awaiting_confirmation(
                listing_id=listing.id,
                buyer_id=buyer_id,
                transaction_hash=transaction_hash,
                next_check_at=self.retry_policy.next_attempt_at(
                    attempt=1, now=datetime.now(timezone.utc)
                ),
            )
            if parked:
                await uow.commit()
            current = await uow.listing_command_repo.get_by_id(listing_id=listing.id) or listing

        if parked:
            metrics.record_listing_transition(status=ListingStatus.AWAITING_CONFIRMATION)
            Logger.base.info(
                f'⏳ [LISTING] {listing.id} awaiting confirmation of {transaction_hash}'
            )
            return current

        # Someone else moved the listing in between
        if current.is_sale_replay(buyer_id=buyer_id, transaction_hash=transaction_hash):
            return current
        if current.pending_transaction_hash == transaction_hash:
            return current
        raise ListingSettlementInProgressError(listing_id=listing.id)

    async def _release_pending(self, *, listing: Listing, transaction_hash: str) -> None:
        if listing.pending_transaction_hash != transaction_hash:
            return
        async with self.uow_factory() as uow:
            reverted = await uow.listing_command_repo.revert_to_active(
                listing_id=listing.id, transaction_hash=transaction_hash
            )
            if reverted:
                await uow.commit()
        if reverted:
            metrics.record_listing_transition(status=ListingStatus.ACTIVE)
            Logger.base.warning(
                f'↩️ [LISTING] {listing.id} back to active, {transaction_hash} did not settle'
            )

    async def _record_sale(
        self, *, listing: Listing, seller: User, buyer_id: UUID, transaction_hash: str
    ) -> Listing:
        async with self.uow_factory() as uow:
            sold = await uow.listing_command_repo.mark_sold(
                listing_id=listing.id,
                buyer_id=buyer_id,
                transaction_hash=transaction_hash,
                sold_at=datetime.now(timezone.utc),
            )
            if not sold:
                current = await uow.listing_command_repo.get_by_id(listing_id=listing.id) or listing
                if current.status == ListingStatus.SOLD:
                    if current.is_sale_replay(buyer_id=buyer_id, transaction_hash=transaction_hash):
                        return current
                    raise ListingAlreadySoldError(listing_id=listing.id)
                raise InvalidStateTransitionError(
                    entity=f'Listing {listing.id}',
                    current=current.status,
                    target=ListingStatus.SOLD,
                )

            moved = await uow.ticket_command_repo.transfer_ownership(
                ticket_id=listing.ticket_id, from_owner_id=listing.seller_id, to_owner_id=buyer_id
            )
            if not moved:
                raise ConflictError(f'Ticket {listing.ticket_id} is no longer owned by the seller')

            relisted = await uow.listing_command_repo.get_open_by_nft(
                nft_mint_address=listing.nft_mint_address
            )
            if relisted and relisted.id != listing.id:
                await uow.listing_command_repo.mark_cancelled(listing_id=relisted.id)

            fee_rate = await resolve_resale_fee_rate(uow)
            split = None
            if fee_rate is not None:
                split = RevenueSplit.compute(total=listing.price, fee_rate=fee_rate)
                await uow.payment_distribution_repo.create_resale(
                    distribution=ResaleDistribution.from_split(
                        listing_id=listing.id,
                        split=split,
                        platform_wallet=await resolve_platform_wallet(uow),
                        seller_wallet=seller.wallet_address,
                        transaction_hash=transaction_hash,
                    )
                )

            await uow.commit()
            current = await uow.listing_command_repo.get_by_id(listing_id=listing.id) or listing

        metrics.record_listing_transition(status=ListingStatus.SOLD)
        if split is not None:
            metrics.record_settlement(kind='resale', result='created')
        Logger.base.info(
            f'🤝 [LISTING] {listing.id} sold to {buyer_id} for {listing.price} (tx={transaction_hash})'
        )
        return current
