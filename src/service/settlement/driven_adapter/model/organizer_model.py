from typing import Optional
from uuid import UUID

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base


class OrganizerModel(Base):
    __tablename__ = 'organizer'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey('user.id'), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    wallet_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class CategoryModel(Base):
    __tablename__ = 'category'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
