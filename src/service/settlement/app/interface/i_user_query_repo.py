from abc import ABC, abstractmethod
from uuid import UUID

from src.service.settlement.domain.entity.user_entity import User


class IUserQueryRepo(ABC):
    @abstractmethod
    async def get_by_id(self, *, user_id: UUID) -> User | None:
        pass
