from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.platform.database.orm_db_setting import Base


class TicketModel(Base):
    __tablename__ = 'ticket'
    __table_args__ = (UniqueConstraint('order_id', 'unit_index', name='uq_ticket_order_unit'),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    order_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('order.id'), nullable=False, index=True)
    event_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('event.id'), nullable=False, index=True)
    owner_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('user.id'), nullable=False, index=True)
    unit_index: Mapped[int] = mapped_column(Integer, nullable=False)
    token_id: Mapped[int] = mapped_column(Integer, nullable=False)
    nft_mint_address: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    mint_transaction_hash: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True, index=True
    )
    mint_status: Mapped[str] = mapped_column(String(20), default='pending', nullable=False)
    is_valid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
