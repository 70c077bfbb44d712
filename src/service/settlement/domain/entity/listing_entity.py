from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import attrs
from uuid_utils.compat import uuid7

from src.platform.exception.exceptions import UnauthorizedActorError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.settlement.domain.enum.listing_status import ListingStatus
from src.service.settlement.domain.exceptions import (
    InvalidStateTransitionError,
    ListingAlreadySoldError,
    ListingSettlementInProgressError,
)
from src.service.settlement.domain.value_object.money import to_amount


@attrs.define
class Listing:
    id: UUID
    ticket_id: UUID
    nft_mint_address: str
    seller_id: UUID
    price: Decimal
    original_price: Decimal
    seller_signature: str
    status: ListingStatus = ListingStatus.ACTIVE
    listing_address: Optional[str] = None
    sold_to: Optional[UUID] = None
    sold_at: Optional[datetime] = None
    transaction_hash: Optional[str] = None
    pending_buyer_id: Optional[UUID] = None
    pending_transaction_hash: Optional[str] = None
    confirmation_attempts: int = 0
    next_check_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    @Logger.io
    def create(
        cls,
        *,
        ticket_id: UUID,
        nft_mint_address: str,
        seller_id: UUID,
        price: Decimal,
        original_price: Decimal,
        seller_signature: str,
        listing_address: Optional[str] = None,
    ) -> 'Listing':
        amount = to_amount(price)
        if amount <= 0:
            raise ValidationError('Listing price must be greater than 0')
        if not seller_signature or not seller_signature.strip():
            raise ValidationError('seller_signature is required')

        now = datetime.now(timezone.utc)
        return cls(
            id=uuid7(),
            ticket_id=ticket_id,
            nft_mint_address=nft_mint_address,
            seller_id=seller_id,
            price=amount,
            original_price=to_amount(original_price),
            seller_signature=seller_signature.strip(),
            status=ListingStatus.ACTIVE,
            listing_address=listing_address,
            created_at=now,
            updated_at=now,
        )

    @Logger.io
    def should_cancel(self, *, seller_id: UUID) -> bool:
        """
        False when the listing is already terminal (cancel is a no-op).

        Raises:
            UnauthorizedActorError: caller is not the seller
            ListingSettlementInProgressError: a sale is awaiting ledger finality
        """
        if self.seller_id != seller_id:
            raise UnauthorizedActorError('Only the seller can cancel this listing')
        if self.status == ListingStatus.AWAITING_CONFIRMATION:
            raise ListingSettlementInProgressError(listing_id=self.id)
        return self.status == ListingStatus.ACTIVE

    @Logger.io
    def is_sale_replay(self, *, buyer_id: UUID, transaction_hash: str) -> bool:
        """
        True when this exact sale was already recorded.

        Raises:
            ValidationError: seller trying to buy their own listing
            ListingAlreadySoldError: sold through a different transaction

        A cancelled listing is not rejected here: a transfer that is already
        final on the ledger still completes the sale.
        """
        if buyer_id == self.seller_id:
            raise ValidationError('Seller cannot buy their own listing')
        if self.status == ListingStatus.SOLD:
            if self.transaction_hash == transaction_hash and self.sold_to == buyer_id:
                return True
            raise ListingAlreadySoldError(listing_id=self.id)
        return False

    @Logger.io
    def ensure_can_await_sale(self) -> None:
        """
        Raises:
            InvalidStateTransitionError: a cancelled listing cannot hold a pending sale
        """
        if self.status == ListingStatus.CANCELLED:
            raise InvalidStateTransitionError(
                entity=f'Listing {self.id}',
                current=self.status,
                target=ListingStatus.AWAITING_CONFIRMATION,
            )
