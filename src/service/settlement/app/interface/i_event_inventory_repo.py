"""
Event Inventory Repository Interface

tickets_available / tickets_sold are only ever changed here, always inside the
transaction that writes the order or ticket change justifying the delta.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from src.service.settlement.domain.entity.event_entity import Event


class IEventInventoryRepo(ABC):
    @abstractmethod
    async def get_by_id(self, *, event_id: UUID) -> Event | None:
        pass

    @abstractmethod
    async def reserve_tickets(self, *, event_id: UUID, quantity: int) -> bool:
        """Decrement tickets_available only if enough remain"""
        pass

    @abstractmethod
    async def release_tickets(self, *, event_id: UUID, quantity: int) -> None:
        pass

    @abstractmethod
    async def record_sold(self, *, event_id: UUID, quantity: int) -> None:
        pass
