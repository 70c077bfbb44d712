from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from src.platform.database.orm_db_setting import Base


if TYPE_CHECKING:
    from src.service.settlement.driven_adapter.model.organizer_model import OrganizerModel


class EventModel(Base):
    __tablename__ = 'event'
    __table_args__ = (
        CheckConstraint('tickets_available >= 0', name='ck_event_tickets_available_non_negative'),
        CheckConstraint('tickets_sold >= 0', name='ck_event_tickets_sold_non_negative'),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    tickets_available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tickets_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    organizer_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey('organizer.id'), nullable=True, index=True
    )
    category_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey('category.id'), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    organizer: Mapped[Optional['OrganizerModel']] = relationship(
        'OrganizerModel', foreign_keys=[organizer_id], lazy='selectin'
    )
