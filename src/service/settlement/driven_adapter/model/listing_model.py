from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.platform.database.orm_db_setting import Base


_OPEN_LISTING = text("status IN ('active', 'awaiting_confirmation')")


class ListingModel(Base):
    __tablename__ = 'listing'
    __table_args__ = (
        # At most one open listing per NFT
        Index(
            'uq_listing_open_nft',
            'nft_mint_address',
            unique=True,
            postgresql_where=_OPEN_LISTING,
            sqlite_where=_OPEN_LISTING,
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    ticket_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('ticket.id'), nullable=False, index=True)
    nft_mint_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    seller_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('user.id'), nullable=False, index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    original_price: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default='active', nullable=False, index=True)
    seller_signature: Mapped[str] = mapped_column(Text, nullable=False)
    listing_address: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    sold_to: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey('user.id'), nullable=True)
    sold_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    transaction_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    pending_buyer_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey('user.id'), nullable=True
    )
    pending_transaction_hash: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True, index=True
    )
    confirmation_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    next_check_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
