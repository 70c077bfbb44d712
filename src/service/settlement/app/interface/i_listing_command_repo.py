"""
Listing Command Repository Interface

Open listings (ACTIVE / AWAITING_CONFIRMATION) are unique per NFT at the
storage level; create() surfaces a violation as UniqueViolationError.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from src.service.settlement.domain.entity.listing_entity import Listing


class IListingCommandRepo(ABC):
    @abstractmethod
    async def create(self, *, listing: Listing) -> Listing:
        pass

    @abstractmethod
    async def get_by_id(self, *, listing_id: UUID) -> Listing | None:
        pass

    @abstractmethod
    async def get_open_by_nft(self, *, nft_mint_address: str) -> Listing | None:
        pass

    @abstractmethod
    async def get_by_pending_transaction(self, *, transaction_hash: str) -> Listing | None:
        pass

    @abstractmethod
    async def mark_cancelled(self, *, listing_id: UUID) -> bool:
        """ACTIVE → CANCELLED"""
        pass

    @abstractmethod
    async def mark_awaiting_confirmation(
        self,
        *,
        listing_id: UUID,
        buyer_id: UUID,
        transaction_hash: str,
        next_check_at: datetime,
    ) -> bool:
        """ACTIVE → AWAITING_CONFIRMATION"""
        pass

    @abstractmethod
    async def mark_sold(
        self, *, listing_id: UUID, buyer_id: UUID, transaction_hash: str, sold_at: datetime
    ) -> bool:
        """ACTIVE | AWAITING_CONFIRMATION | CANCELLED → SOLD (caller has verified the transfer)"""
        pass

    @abstractmethod
    async def revert_to_active(self, *, listing_id: UUID, transaction_hash: str) -> bool:
        """AWAITING_CONFIRMATION (for this pending tx) → ACTIVE"""
        pass

    @abstractmethod
    async def schedule_confirmation_check(
        self, *, listing_id: UUID, confirmation_attempts: int, next_check_at: datetime
    ) -> None:
        pass

    @abstractmethod
    async def list_awaiting_due(self, *, now: datetime, limit: int) -> list[Listing]:
        pass
