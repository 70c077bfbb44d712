from abc import ABC, abstractmethod

from src.service.settlement.domain.domain_event.order_domain_event import OrderPaidEvent


class IOrderEventPublisher(ABC):
    @abstractmethod
    async def publish_order_paid(self, *, event: OrderPaidEvent) -> None:
        pass
