from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.platform.database.orm_db_setting import Base


class PaymentDistributionModel(Base):
    __tablename__ = 'payment_distribution'
    __table_args__ = (
        CheckConstraint('organizer_share >= 0', name='ck_payment_distribution_organizer_share'),
        CheckConstraint('platform_share >= 0', name='ck_payment_distribution_platform_share'),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    order_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey('order.id'), unique=True, nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    organizer_share: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    platform_share: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    organizer_wallet: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    platform_wallet: Mapped[str] = mapped_column(String(64), nullable=False)
    transaction_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default='completed', nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ResaleDistributionModel(Base):
    __tablename__ = 'resale_distribution'
    __table_args__ = (
        CheckConstraint('seller_share >= 0', name='ck_resale_distribution_seller_share'),
        CheckConstraint('platform_share >= 0', name='ck_resale_distribution_platform_share'),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    listing_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey('listing.id'), unique=True, nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    seller_share: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    platform_share: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    seller_wallet: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    platform_wallet: Mapped[str] = mapped_column(String(64), nullable=False)
    transaction_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default='completed', nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
