"""
Unit tests for SettlementConsumer

Test Focus:
1. Handlers parse the payload and delegate to the right use case
2. Malformed payloads are rejected with ValidationError (no use case call)
3. Message processing policy: business rejection is committed without DLQ,
   a ledger that stays unavailable is retried then sent to the DLQ
"""

from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, Mock

from anyio.from_thread import start_blocking_portal
import orjson
import pytest
from uuid_utils.compat import uuid7

from src.platform.exception.exceptions import (
    LedgerTransientError,
    NotFoundError,
    ValidationError,
)
from src.platform.message_queue.kafka_constant_builder import KafkaTopicBuilder
from src.service.settlement.driving_adapter.mq_consumer.settlement_mq_consumer import (
    SettlementConsumer,
)


ORDER_ID = '0190f1a0-3c4e-7d2a-9b1f-5e6a7b8c9d01'


@pytest.fixture
def consumer() -> SettlementConsumer:
    consumer = SettlementConsumer()
    consumer.submit_order_use_case = AsyncMock()
    consumer.confirm_payment_use_case = AsyncMock()
    consumer.cancel_order_use_case = AsyncMock()
    consumer.mint_tickets_use_case = AsyncMock()
    consumer.create_listing_use_case = AsyncMock()
    consumer.cancel_listing_use_case = AsyncMock()
    consumer.fulfill_listing_use_case = AsyncMock()
    consumer.reconcile_ledger_state_use_case = AsyncMock()
    return consumer


def _kafka_message(payload: Any, *, topic: str, offset: int = 7) -> Mock:
    msg = Mock()
    msg.value.return_value = orjson.dumps(payload)
    msg.topic.return_value = topic
    msg.partition.return_value = 0
    msg.offset.return_value = offset
    msg.timestamp.return_value = (0, 0)
    return msg


@pytest.mark.unit
class TestTopicHandlers:
    def test_subscribes_to_every_inbound_topic(self, consumer: SettlementConsumer) -> None:
        topics = set(consumer._get_topic_handlers())

        assert topics == set(KafkaTopicBuilder.get_all_topics()) - {
            KafkaTopicBuilder.settlement_dlq()
        }

    @pytest.mark.asyncio
    async def test_submit_order(self, consumer: SettlementConsumer) -> None:
        event_id, user_id = uuid7(), uuid7()

        await consumer._handle_submit_order(
            {'event_id': str(event_id), 'user_id': str(user_id), 'quantity': 2}
        )

        consumer.submit_order_use_case.execute.assert_awaited_once_with(  # type: ignore[union-attr]
            event_id=event_id, user_id=user_id, quantity=2
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize('quantity', [None, '2', 1.5])
    async def test_submit_order_requires_integer_quantity(
        self, consumer: SettlementConsumer, quantity
    ) -> None:
        with pytest.raises(ValidationError, match='quantity'):
            await consumer._handle_submit_order(
                {'event_id': str(uuid7()), 'user_id': str(uuid7()), 'quantity': quantity}
            )

        consumer.submit_order_use_case.execute.assert_not_awaited()  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_confirm_payment(self, consumer: SettlementConsumer) -> None:
        order_id = uuid7()

        await consumer._handle_confirm_payment(
            {'order_id': str(order_id), 'transaction_hash': 'tx1'}
        )

        consumer.confirm_payment_use_case.execute.assert_awaited_once_with(  # type: ignore[union-attr]
            order_id=order_id, transaction_hash='tx1'
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        'payload',
        [
            {'transaction_hash': 'tx1'},
            {'order_id': 'not-a-uuid', 'transaction_hash': 'tx1'},
            {'order_id': ORDER_ID, 'transaction_hash': '   '},
            {'order_id': ORDER_ID},
        ],
    )
    async def test_confirm_payment_rejects_malformed(
        self, consumer: SettlementConsumer, payload: dict
    ) -> None:
        with pytest.raises(ValidationError):
            await consumer._handle_confirm_payment(payload)

        consumer.confirm_payment_use_case.execute.assert_not_awaited()  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_order_paid_triggers_minting(self, consumer: SettlementConsumer) -> None:
        order_id = uuid7()

        await consumer._handle_order_paid({'order_id': str(order_id), 'quantity': 1})

        consumer.mint_tickets_use_case.execute.assert_awaited_once_with(order_id=order_id)  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_create_listing_parses_price_without_float(
        self, consumer: SettlementConsumer
    ) -> None:
        ticket_id, seller_id = uuid7(), uuid7()

        await consumer._handle_create_listing(
            {
                'ticket_id': str(ticket_id),
                'seller_id': str(seller_id),
                'price': 0.1,
                'seller_signature': 'sig',
            }
        )

        kwargs = consumer.create_listing_use_case.execute.await_args.kwargs  # type: ignore[union-attr]
        assert kwargs['price'] == Decimal('0.1')
        assert kwargs['ticket_id'] == ticket_id
        assert kwargs['listing_address'] is None

    @pytest.mark.asyncio
    async def test_create_listing_requires_price(self, consumer: SettlementConsumer) -> None:
        with pytest.raises(ValidationError, match='price'):
            await consumer._handle_create_listing(
                {'ticket_id': str(uuid7()), 'seller_id': str(uuid7()), 'seller_signature': 'sig'}
            )

    @pytest.mark.asyncio
    async def test_fulfill_listing(self, consumer: SettlementConsumer) -> None:
        listing_id, buyer_id = uuid7(), uuid7()

        await consumer._handle_fulfill_listing(
            {'listing_id': str(listing_id), 'buyer_id': str(buyer_id), 'transaction_hash': 'txS'}
        )

        consumer.fulfill_listing_use_case.execute.assert_awaited_once_with(  # type: ignore[union-attr]
            listing_id=listing_id, buyer_id=buyer_id, transaction_hash='txS'
        )

    @pytest.mark.asyncio
    async def test_transaction_finalized(self, consumer: SettlementConsumer) -> None:
        await consumer._handle_transaction_finalized({'transaction_hash': 'txF'})

        consumer.reconcile_ledger_state_use_case.reconcile_transaction.assert_awaited_once_with(  # type: ignore[union-attr]
            transaction_hash='txF'
        )


@pytest.mark.unit
class TestProcessMessage:
    @pytest.fixture
    def running(self, consumer: SettlementConsumer):
        consumer.producer = Mock()
        consumer.TRANSIENT_RETRY_DELAY_SECONDS = 0
        with start_blocking_portal() as portal:
            consumer.set_portal(portal)
            yield consumer

    def test_success_tracks_offset(self, running: SettlementConsumer) -> None:
        handler = AsyncMock()
        topic = KafkaTopicBuilder.confirm_payment()

        running._process_message(_kafka_message({'order_id': 'o1'}, topic=topic), handler, topic)

        handler.assert_awaited_once_with({'order_id': 'o1'})
        assert running._pending_offsets == {topic: {0: 8}}
        running.producer.produce.assert_not_called()  # type: ignore[union-attr]

    def test_business_rejection_is_not_dead_lettered(self, running: SettlementConsumer) -> None:
        handler = AsyncMock(side_effect=NotFoundError('Order o1 not found'))
        topic = KafkaTopicBuilder.confirm_payment()

        running._process_message(_kafka_message({'order_id': 'o1'}, topic=topic), handler, topic)

        assert handler.await_count == 1
        running.producer.produce.assert_not_called()  # type: ignore[union-attr]
        assert running._pending_offsets == {topic: {0: 8}}

    def test_transient_error_retried_then_dead_lettered(self, running: SettlementConsumer) -> None:
        handler = AsyncMock(side_effect=LedgerTransientError('node down'))
        topic = KafkaTopicBuilder.order_paid()

        running._process_message(_kafka_message({'order_id': 'o1'}, topic=topic), handler, topic)

        assert handler.await_count == running.TRANSIENT_RETRY_ATTEMPTS
        running.producer.produce.assert_called_once()  # type: ignore[union-attr]
        produced = running.producer.produce.call_args.kwargs  # type: ignore[union-attr]
        assert produced['topic'] == KafkaTopicBuilder.settlement_dlq()
        assert produced['key'] == b'o1'
        body = orjson.loads(produced['value'])
        assert body['original_message'] == {'order_id': 'o1'}
        assert body['original_topic'] == topic
        assert body['retry_count'] == running.TRANSIENT_RETRY_ATTEMPTS

    def test_transient_error_recovers_in_place(self, running: SettlementConsumer) -> None:
        handler = AsyncMock(side_effect=[LedgerTransientError('node down'), None])
        topic = KafkaTopicBuilder.order_paid()

        running._process_message(_kafka_message({'order_id': 'o1'}, topic=topic), handler, topic)

        assert handler.await_count == 2
        running.producer.produce.assert_not_called()  # type: ignore[union-attr]

    def test_unexpected_error_is_dead_lettered(self, running: SettlementConsumer) -> None:
        handler = AsyncMock(side_effect=RuntimeError('boom'))
        topic = KafkaTopicBuilder.fulfill_listing()

        running._process_message(
            _kafka_message({'listing_id': 'l1'}, topic=topic), handler, topic
        )

        produced = running.producer.produce.call_args.kwargs  # type: ignore[union-attr]
        assert produced['key'] == b'l1'
        assert orjson.loads(produced['value'])['error'] == 'boom'

    def test_non_object_payload_is_dead_lettered(self, running: SettlementConsumer) -> None:
        handler = AsyncMock()
        topic = KafkaTopicBuilder.submit_order()

        running._process_message(_kafka_message([1, 2], topic=topic), handler, topic)

        handler.assert_not_awaited()
        body = orjson.loads(running.producer.produce.call_args.kwargs['value'])  # type: ignore[union-attr]
        assert 'raw' in body['original_message']
        assert running._pending_offsets == {topic: {0: 8}}
