"""
Domain Event Publisher

Async event publishing using confluent-kafka's experimental AsyncIO Producer.
Payloads are JSON (orjson) with the trace context merged in.

Features:
- Global async producer instance for connection reuse
- Idempotent producer with acks=all for reliability
- Keyed by aggregate id so every message for one order lands on one partition
- Batching with linger.ms=50, snappy compression
"""

from typing import Literal

from confluent_kafka.experimental.aio import AIOProducer
from opentelemetry import trace
import orjson

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import inject_trace_context
from src.service.settlement.domain.domain_event.mq_domain_event import MqDomainEvent


# Global async producer instance
_global_producer: AIOProducer | None = None


async def _get_global_producer() -> AIOProducer:
    """Get global async producer instance - avoid creating new producer on every publish"""
    global _global_producer
    if _global_producer is None:
        _global_producer = AIOProducer(
            {
                'bootstrap.servers': settings.KAFKA_BOOTSTRAP_SERVERS,
                'client.id': settings.KAFKA_PRODUCER_INSTANCE_ID,
                # === Reliability Settings ===
                'enable.idempotence': True,
                'acks': 'all',
                'retries': 3,
                # === Batching ===
                'linger.ms': 50,
                'batch.size': 16384,
                'compression.type': 'snappy',
                'max.in.flight.requests.per.connection': 5,
            }
        )
    return _global_producer


def serialize_domain_event(event: MqDomainEvent) -> bytes:
    payload = {
        **event.to_message(),
        'event_type': event.__class__.__name__,
        **inject_trace_context(),
    }
    return orjson.dumps(payload)


async def publish_domain_event(*, event: MqDomainEvent, topic: str) -> Literal[True]:
    """
    Publish a domain event to a Kafka topic (async, non-blocking).

    Example:
        await publish_domain_event(
            event=OrderPaidEvent.from_order(order=order),
            topic=KafkaTopicBuilder.order_paid(),
        )
    """
    tracer = trace.get_tracer(__name__)

    with tracer.start_as_current_span(
        'kafka.publish',
        attributes={
            'messaging.system': 'kafka',
            'messaging.destination': topic,
            'messaging.destination_kind': 'topic',
            'event.type': event.__class__.__name__,
        },
    ):
        value_bytes = serialize_domain_event(event)

        producer = await _get_global_producer()
        await producer.produce(
            topic=topic,
            key=str(event.aggregate_id).encode('utf-8'),
            value=value_bytes,
        )

        Logger.base.info(f'📤 Published {event.__class__.__name__} {event.aggregate_id} to {topic}')
        return True


async def flush_all_messages() -> None:
    global _global_producer
    if _global_producer is not None:
        await _global_producer.flush()
        Logger.base.info('Flushed async producer')


async def close_producer() -> None:
    global _global_producer
    if _global_producer is not None:
        await _global_producer.flush()
        await _global_producer.close()
        _global_producer = None
        Logger.base.info('Closed async producer')
