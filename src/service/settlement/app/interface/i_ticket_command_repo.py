from abc import ABC, abstractmethod
from uuid import UUID

from src.service.settlement.domain.entity.ticket_entity import Ticket
from src.service.settlement.domain.enum.mint_status import MintStatus


class ITicketCommandRepo(ABC):
    @abstractmethod
    async def create(self, *, ticket: Ticket) -> Ticket:
        """
        Insert a ticket row for one order unit

        Raises:
            UniqueViolationError: (order_id, unit_index) or nft_mint_address already recorded
        """
        pass

    @abstractmethod
    async def get_by_id(self, *, ticket_id: UUID) -> Ticket | None:
        pass

    @abstractmethod
    async def get_by_mint_transaction(self, *, transaction_hash: str) -> Ticket | None:
        pass

    @abstractmethod
    async def list_by_order(self, *, order_id: UUID) -> list[Ticket]:
        """Ordered by unit_index"""
        pass

    @abstractmethod
    async def update_mint_status(self, *, ticket_id: UUID, mint_status: MintStatus) -> None:
        pass

    @abstractmethod
    async def validate_for_order(self, *, order_id: UUID) -> int:
        """Set is_valid on every ticket of the order; returns affected rows"""
        pass

    @abstractmethod
    async def invalidate_for_order(self, *, order_id: UUID) -> int:
        pass

    @abstractmethod
    async def transfer_ownership(
        self, *, ticket_id: UUID, from_owner_id: UUID, to_owner_id: UUID
    ) -> bool:
        """Conditional on the current owner; False means the ticket moved already"""
        pass
