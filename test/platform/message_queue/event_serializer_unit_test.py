"""
Unit tests for domain event serialization and topic naming

Tests:
- OrderPaidEvent → JSON bytes (event_type tag, string ids, trace context merge)
- Topic / consumer group names follow the settlement naming scheme
"""

from datetime import datetime, timezone
from decimal import Decimal

import orjson
import pytest
from uuid_utils.compat import uuid7

from src.platform.message_queue.event_publisher import serialize_domain_event
from src.platform.message_queue.kafka_constant_builder import (
    KafkaConsumerGroupBuilder,
    KafkaTopicBuilder,
    ServiceNames,
)
from src.service.settlement.domain.domain_event.mq_domain_event import MqDomainEvent
from src.service.settlement.domain.domain_event.order_domain_event import OrderPaidEvent
from src.service.settlement.domain.entity.order_entity import Order
from src.service.settlement.domain.enum.order_status import OrderStatus


@pytest.mark.unit
class TestSerializeDomainEvent:
    @pytest.fixture
    def event(self) -> OrderPaidEvent:
        return OrderPaidEvent(
            order_id=uuid7(),
            event_id=uuid7(),
            quantity=3,
            transaction_hash='txpay',
            occurred_at=datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc),
        )

    def test_payload(self, event: OrderPaidEvent) -> None:
        payload = orjson.loads(serialize_domain_event(event))

        assert payload['event_type'] == 'OrderPaidEvent'
        assert payload['order_id'] == str(event.order_id)
        assert payload['event_id'] == str(event.event_id)
        assert payload['quantity'] == 3
        assert payload['transaction_hash'] == 'txpay'
        assert payload['occurred_at'] == '2026-01-15T10:30:00+00:00'

    def test_satisfies_mq_protocol(self, event: OrderPaidEvent) -> None:
        assert isinstance(event, MqDomainEvent)
        assert event.aggregate_id == event.order_id

    def test_from_order(self) -> None:
        order = Order.create(event_id=uuid7(), user_id=uuid7(), quantity=2, unit_price=Decimal('5'))
        order.status = OrderStatus.PAID
        order.transaction_hash = 'txpay'

        event = OrderPaidEvent.from_order(order=order)

        assert event.order_id == order.id
        assert event.quantity == 2
        assert event.transaction_hash == 'txpay'


@pytest.mark.unit
class TestTopicNaming:
    def test_command_topics_target_settlement_service(self) -> None:
        for topic in KafkaTopicBuilder.get_all_topics():
            assert topic.startswith('settlement______')
            assert topic.endswith(ServiceNames.SETTLEMENT_SERVICE)

    def test_topics_are_unique(self) -> None:
        topics = KafkaTopicBuilder.get_all_topics()

        assert len(topics) == len(set(topics))

    def test_known_names(self) -> None:
        assert KafkaTopicBuilder.submit_order() == (
            'settlement______submit-order______marketplace-api___to___settlement-service'
        )
        assert KafkaTopicBuilder.ledger_transaction_finalized() == (
            'settlement______ledger-transaction-finalized______ledger-gateway'
            '___to___settlement-service'
        )
        assert KafkaConsumerGroupBuilder.settlement_service() == (
            'settlement_____settlement-service'
        )
