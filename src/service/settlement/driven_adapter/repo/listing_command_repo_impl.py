from datetime import datetime, timezone
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.sqlalchemy_helper import as_utc, flush_new
from src.platform.logging.loguru_io import Logger
from src.service.settlement.app.interface.i_listing_command_repo import IListingCommandRepo
from src.service.settlement.domain.entity.listing_entity import Listing
from src.service.settlement.domain.enum.listing_status import (
    OPEN_LISTING_STATUSES,
    ListingStatus,
)
from src.service.settlement.driven_adapter.model.listing_model import ListingModel


class ListingCommandRepoImpl(IListingCommandRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _model_to_entity(model: ListingModel) -> Listing:
        return Listing(
            id=model.id,
            ticket_id=model.ticket_id,
            nft_mint_address=model.nft_mint_address,
            seller_id=model.seller_id,
            price=model.price,
            original_price=model.original_price,
            seller_signature=model.seller_signature,
            status=ListingStatus(model.status),
            listing_address=model.listing_address,
            sold_to=model.sold_to,
            sold_at=as_utc(model.sold_at),
            transaction_hash=model.transaction_hash,
            pending_buyer_id=model.pending_buyer_id,
            pending_transaction_hash=model.pending_transaction_hash,
            confirmation_attempts=model.confirmation_attempts,
            next_check_at=as_utc(model.next_check_at),
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )

    async def _transition(
        self,
        *,
        listing_id: UUID,
        sources: Iterable[ListingStatus],
        target: ListingStatus,
        extra_conditions: tuple[Any, ...] = (),
        **values: Any,
    ) -> bool:
        result = await self.session.execute(
            update(ListingModel)
            .where(
                ListingModel.id == listing_id,
                ListingModel.status.in_([s.value for s in sources]),
                *extra_conditions,
            )
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    @Logger.io
    async def create(self, *, listing: Listing) -> Listing:
        now = datetime.now(timezone.utc)
        model = ListingModel(
            id=listing.id,
            ticket_id=listing.ticket_id,
            nft_mint_address=listing.nft_mint_address,
            seller_id=listing.seller_id,
            price=listing.price,
            original_price=listing.original_price,
            status=listing.status.value,
            seller_signature=listing.seller_signature,
            listing_address=listing.listing_address,
            confirmation_attempts=0,
            created_at=listing.created_at or now,
            updated_at=listing.updated_at or now,
        )
        await flush_new(
            self.session,
            model,
            conflict_message=f'Open listing already exists for {listing.nft_mint_address}',
        )
        return self._model_to_entity(model)

    @Logger.io
    async def get_by_id(self, *, listing_id: UUID) -> Listing | None:
        model = await self.session.get(ListingModel, listing_id, populate_existing=True)
        return self._model_to_entity(model) if model else None

    @Logger.io
    async def get_open_by_nft(self, *, nft_mint_address: str) -> Listing | None:
        result = await self.session.execute(
            select(ListingModel).where(
                ListingModel.nft_mint_address == nft_mint_address,
                ListingModel.status.in_([s.value for s in OPEN_LISTING_STATUSES]),
            )
        )
        model = result.scalars().first()
        return self._model_to_entity(model) if model else None

    @Logger.io
    async def get_by_pending_transaction(self, *, transaction_hash: str) -> Listing | None:
        result = await self.session.execute(
            select(ListingModel).where(ListingModel.pending_transaction_hash == transaction_hash)
        )
        model = result.scalars().first()
        return self._model_to_entity(model) if model else None

    @Logger.io
    async def mark_cancelled(self, *, listing_id: UUID) -> bool:
        return await self._transition(
            listing_id=listing_id,
            sources=[ListingStatus.ACTIVE],
            target=ListingStatus.CANCELLED,
        )

    @Logger.io
    async def mark_awaiting_confirmation(
        self,
        *,
        listing_id: UUID,
        buyer_id: UUID,
        transaction_hash: str,
        next_check_at: datetime,
    ) -> bool:
        return await self._transition(
            listing_id=listing_id,
            sources=[ListingStatus.ACTIVE],
            target=ListingStatus.AWAITING_CONFIRMATION,
            pending_buyer_id=buyer_id,
            pending_transaction_hash=transaction_hash,
            confirmation_attempts=0,
            next_check_at=next_check_at,
        )

    @Logger.io
    async def mark_sold(
        self, *, listing_id: UUID, buyer_id: UUID, transaction_hash: str, sold_at: datetime
    ) -> bool:
        return await self._transition(
            listing_id=listing_id,
            sources=[*OPEN_LISTING_STATUSES, ListingStatus.CANCELLED],
            target=ListingStatus.SOLD,
            sold_to=buyer_id,
            sold_at=sold_at,
            transaction_hash=transaction_hash,
            pending_buyer_id=None,
            pending_transaction_hash=None,
            next_check_at=None,
        )

    @Logger.io
    async def revert_to_active(self, *, listing_id: UUID, transaction_hash: str) -> bool:
        return await self._transition(
            listing_id=listing_id,
            sources=[ListingStatus.AWAITING_CONFIRMATION],
            target=ListingStatus.ACTIVE,
            extra_conditions=(ListingModel.pending_transaction_hash == transaction_hash,),
            pending_buyer_id=None,
            pending_transaction_hash=None,
            confirmation_attempts=0,
            next_check_at=None,
        )

    @Logger.io
    async def schedule_confirmation_check(
        self, *, listing_id: UUID, confirmation_attempts: int, next_check_at: datetime
    ) -> None:
        await self.session.execute(
            update(ListingModel)
            .where(
                ListingModel.id == listing_id,
                ListingModel.status == ListingStatus.AWAITING_CONFIRMATION.value,
            )
            .values(confirmation_attempts=confirmation_attempts, next_check_at=next_check_at)
            .execution_options(synchronize_session=False)
        )

    @Logger.io
    async def list_awaiting_due(self, *, now: datetime, limit: int) -> list[Listing]:
        result = await self.session.execute(
            select(ListingModel)
            .where(
                ListingModel.status == ListingStatus.AWAITING_CONFIRMATION.value,
                ListingModel.next_check_at <= now,
            )
            .order_by(ListingModel.next_check_at)
            .limit(limit)
        )
        return [self._model_to_entity(m) for m in result.scalars().all()]
