"""
Order Command Repository Interface

Every transition is a conditional update on the current status; the boolean
result tells the caller whether it won the transition.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from src.service.settlement.domain.entity.order_entity import Order


class IOrderCommandRepo(ABC):
    @abstractmethod
    async def create(self, *, order: Order) -> Order:
        pass

    @abstractmethod
    async def get_by_id(self, *, order_id: UUID) -> Order | None:
        pass

    @abstractmethod
    async def mark_paid(
        self, *, order_id: UUID, transaction_hash: str, paid_at: datetime, next_attempt_at: datetime
    ) -> bool:
        """PENDING → PAID, storing the payment transaction"""
        pass

    @abstractmethod
    async def mark_paid_after_cancel(
        self, *, order_id: UUID, transaction_hash: str, paid_at: datetime, next_attempt_at: datetime
    ) -> bool:
        """CANCELLED → PAID, for a payment that became final after the cancel"""
        pass

    @abstractmethod
    async def mark_payment_stranded(
        self, *, order_id: UUID, transaction_hash: str, paid_at: datetime, last_error: str
    ) -> bool:
        """CANCELLED → FAILED, keeping the late payment on record for a refund"""
        pass

    @abstractmethod
    async def mark_minting(self, *, order_id: UUID) -> bool:
        """PAID → MINTING"""
        pass

    @abstractmethod
    async def mark_completed(
        self, *, order_id: UUID, nft_mint_address: str, completed_at: datetime
    ) -> bool:
        """MINTING → COMPLETED"""
        pass

    @abstractmethod
    async def mark_failed(self, *, order_id: UUID, last_error: str) -> bool:
        """PAID | MINTING → FAILED"""
        pass

    @abstractmethod
    async def mark_cancelled(self, *, order_id: UUID) -> bool:
        """PENDING → CANCELLED"""
        pass

    @abstractmethod
    async def schedule_next_attempt(
        self,
        *,
        order_id: UUID,
        mint_attempts: int,
        next_attempt_at: datetime,
        last_error: str | None,
    ) -> None:
        pass

    @abstractmethod
    async def list_expired_pending(self, *, now: datetime, limit: int) -> list[Order]:
        pass

    @abstractmethod
    async def list_due_for_minting(self, *, now: datetime, limit: int) -> list[Order]:
        """PAID / MINTING orders whose next_attempt_at has passed"""
        pass

    @abstractmethod
    async def list_completed_without_distribution(self, *, limit: int) -> list[Order]:
        pass
