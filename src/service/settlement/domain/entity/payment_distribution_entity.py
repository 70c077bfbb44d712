from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import attrs
from uuid_utils.compat import uuid7

from src.service.settlement.domain.value_object.money import RevenueSplit


DISTRIBUTION_COMPLETED = 'completed'


@attrs.define
class PaymentDistribution:
    """Primary-sale revenue split, one per order"""

    id: UUID
    order_id: UUID
    total_amount: Decimal
    organizer_share: Decimal
    platform_share: Decimal
    platform_wallet: str
    organizer_wallet: Optional[str] = None
    transaction_hash: Optional[str] = None
    status: str = DISTRIBUTION_COMPLETED
    created_at: Optional[datetime] = None

    @classmethod
    def from_split(
        cls,
        *,
        order_id: UUID,
        split: RevenueSplit,
        platform_wallet: str,
        organizer_wallet: Optional[str],
        transaction_hash: Optional[str],
    ) -> 'PaymentDistribution':
        return cls(
            id=uuid7(),
            order_id=order_id,
            total_amount=split.total,
            organizer_share=split.counterparty_share,
            platform_share=split.platform_share,
            platform_wallet=platform_wallet,
            organizer_wallet=organizer_wallet,
            transaction_hash=transaction_hash,
            created_at=datetime.now(timezone.utc),
        )


@attrs.define
class ResaleDistribution:
    """Secondary-sale proceeds split, only recorded when a resale fee is configured"""

    id: UUID
    listing_id: UUID
    total_amount: Decimal
    seller_share: Decimal
    platform_share: Decimal
    platform_wallet: str
    seller_wallet: Optional[str] = None
    transaction_hash: Optional[str] = None
    status: str = DISTRIBUTION_COMPLETED
    created_at: Optional[datetime] = None

    @classmethod
    def from_split(
        cls,
        *,
        listing_id: UUID,
        split: RevenueSplit,
        platform_wallet: str,
        seller_wallet: Optional[str],
        transaction_hash: str,
    ) -> 'ResaleDistribution':
        return cls(
            id=uuid7(),
            listing_id=listing_id,
            total_amount=split.total,
            seller_share=split.counterparty_share,
            platform_share=split.platform_share,
            platform_wallet=platform_wallet,
            seller_wallet=seller_wallet,
            transaction_hash=transaction_hash,
            created_at=datetime.now(timezone.utc),
        )
