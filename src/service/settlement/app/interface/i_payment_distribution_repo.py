from abc import ABC, abstractmethod
from uuid import UUID

from src.service.settlement.domain.entity.payment_distribution_entity import (
    PaymentDistribution,
    ResaleDistribution,
)


class IPaymentDistributionRepo(ABC):
    @abstractmethod
    async def get_by_order(self, *, order_id: UUID) -> PaymentDistribution | None:
        pass

    @abstractmethod
    async def create(self, *, distribution: PaymentDistribution) -> PaymentDistribution:
        """
        Raises:
            UniqueViolationError: a distribution already exists for the order
        """
        pass

    @abstractmethod
    async def get_resale_by_listing(self, *, listing_id: UUID) -> ResaleDistribution | None:
        pass

    @abstractmethod
    async def create_resale(self, *, distribution: ResaleDistribution) -> ResaleDistribution:
        pass
