"""
Order Event Publisher Implementation

Kafka adapter for IOrderEventPublisher. Messages are keyed by order_id so
every mint request for one order lands on the same partition.
"""

from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.event_publisher import publish_domain_event
from src.platform.message_queue.kafka_constant_builder import KafkaTopicBuilder
from src.service.settlement.app.interface.i_order_event_publisher import IOrderEventPublisher
from src.service.settlement.domain.domain_event.order_domain_event import OrderPaidEvent


class OrderEventPublisherImpl(IOrderEventPublisher):
    @Logger.io
    async def publish_order_paid(self, *, event: OrderPaidEvent) -> None:
        await publish_domain_event(event=event, topic=KafkaTopicBuilder.order_paid())
