"""
Settlement Service Consumer

Consumes marketplace commands, the internal mint request and ledger
finality callbacks, and hands each one to its use case.

Design Principle: no decision logic here - parse, then delegate.
Every handler is idempotent, so at-least-once redelivery is harmless.
"""

import os
from typing import Any, Dict, Optional
from uuid import UUID

from src.platform.exception.exceptions import ValidationError
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.base_kafka_consumer import BaseKafkaConsumer, MessageHandler
from src.platform.message_queue.kafka_constant_builder import (
    KafkaConsumerGroupBuilder,
    KafkaTopicBuilder,
    ServiceNames,
)
from src.service.settlement.app.command.cancel_listing_use_case import CancelListingUseCase
from src.service.settlement.app.command.cancel_order_use_case import CancelOrderUseCase
from src.service.settlement.app.command.confirm_payment_use_case import ConfirmPaymentUseCase
from src.service.settlement.app.command.create_listing_use_case import CreateListingUseCase
from src.service.settlement.app.command.fulfill_listing_use_case import FulfillListingUseCase
from src.service.settlement.app.command.mint_tickets_use_case import MintTicketsUseCase
from src.service.settlement.app.command.reconcile_ledger_state_use_case import (
    ReconcileLedgerStateUseCase,
)
from src.service.settlement.app.command.submit_order_use_case import SubmitOrderUseCase
from src.service.settlement.domain.value_object.money import to_amount


def _uuid(message: Dict[str, Any], field: str) -> UUID:
    raw = message.get(field)
    if not raw:
        raise ValidationError(f'Missing required field: {field}')
    try:
        return UUID(str(raw))
    except ValueError as e:
        raise ValidationError(f'Invalid {field}: {raw!r}') from e


def _str(message: Dict[str, Any], field: str) -> str:
    raw = message.get(field)
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(f'Missing required field: {field}')
    return raw


class SettlementConsumer(BaseKafkaConsumer):
    """
    Listens to:
    1. submit-order / confirm-payment / cancel-order
    2. order-paid (mint request)
    3. create-listing / cancel-listing / fulfill-listing
    4. ledger-transaction-finalized
    """

    KEY_FIELDS = ('order_id', 'listing_id', 'transaction_hash', 'ticket_id', 'event_id')

    def __init__(self) -> None:
        super().__init__(
            service_name='SETTLEMENT',
            consumer_group_id=os.getenv(
                'CONSUMER_GROUP_ID', KafkaConsumerGroupBuilder.settlement_service()
            ),
            dlq_topic=KafkaTopicBuilder.settlement_dlq(),
        )

        # Set by _initialize_dependencies (or directly in tests)
        self.submit_order_use_case: Optional[SubmitOrderUseCase] = None
        self.confirm_payment_use_case: Optional[ConfirmPaymentUseCase] = None
        self.cancel_order_use_case: Optional[CancelOrderUseCase] = None
        self.mint_tickets_use_case: Optional[MintTicketsUseCase] = None
        self.create_listing_use_case: Optional[CreateListingUseCase] = None
        self.cancel_listing_use_case: Optional[CancelListingUseCase] = None
        self.fulfill_listing_use_case: Optional[FulfillListingUseCase] = None
        self.reconcile_ledger_state_use_case: Optional[ReconcileLedgerStateUseCase] = None

    def _initialize_dependencies(self) -> None:
        from src.platform.config.di import container

        self.submit_order_use_case = container.submit_order_use_case()
        self.confirm_payment_use_case = container.confirm_payment_use_case()
        self.cancel_order_use_case = container.cancel_order_use_case()
        self.mint_tickets_use_case = container.mint_tickets_use_case()
        self.create_listing_use_case = container.create_listing_use_case()
        self.cancel_listing_use_case = container.cancel_listing_use_case()
        self.fulfill_listing_use_case = container.fulfill_listing_use_case()
        self.reconcile_ledger_state_use_case = container.reconcile_ledger_state_use_case()

    def _get_topic_handlers(self) -> Dict[str, MessageHandler]:
        return {
            KafkaTopicBuilder.submit_order(): self._handle_submit_order,
            KafkaTopicBuilder.confirm_payment(): self._handle_confirm_payment,
            KafkaTopicBuilder.cancel_order(): self._handle_cancel_order,
            KafkaTopicBuilder.order_paid(): self._handle_order_paid,
            KafkaTopicBuilder.create_listing(): self._handle_create_listing,
            KafkaTopicBuilder.cancel_listing(): self._handle_cancel_listing,
            KafkaTopicBuilder.fulfill_listing(): self._handle_fulfill_listing,
            KafkaTopicBuilder.ledger_transaction_finalized(): self._handle_transaction_finalized,
        }

    # ========== Order Handlers ==========

    async def _handle_submit_order(self, message: Dict[str, Any]) -> None:
        assert self.submit_order_use_case is not None
        quantity = message.get('quantity')
        if not isinstance(quantity, int):
            raise ValidationError('quantity must be an integer')
        await self.submit_order_use_case.execute(
            event_id=_uuid(message, 'event_id'),
            user_id=_uuid(message, 'user_id'),
            quantity=quantity,
        )

    async def _handle_confirm_payment(self, message: Dict[str, Any]) -> None:
        assert self.confirm_payment_use_case is not None
        await self.confirm_payment_use_case.execute(
            order_id=_uuid(message, 'order_id'),
            transaction_hash=_str(message, 'transaction_hash'),
        )

    async def _handle_cancel_order(self, message: Dict[str, Any]) -> None:
        assert self.cancel_order_use_case is not None
        await self.cancel_order_use_case.execute(
            order_id=_uuid(message, 'order_id'),
            user_id=_uuid(message, 'user_id'),
        )

    async def _handle_order_paid(self, message: Dict[str, Any]) -> None:
        assert self.mint_tickets_use_case is not None
        order_id = _uuid(message, 'order_id')
        Logger.base.info(f'\033[93m[{ServiceNames.SETTLEMENT_SERVICE}] Minting order {order_id}\033[0m')
        await self.mint_tickets_use_case.execute(order_id=order_id)

    # ========== Listing Handlers ==========

    async def _handle_create_listing(self, message: Dict[str, Any]) -> None:
        assert self.create_listing_use_case is not None
        raw_price = message.get('price')
        if raw_price is None or isinstance(raw_price, bool):
            raise ValidationError('Missing required field: price')
        await self.create_listing_use_case.execute(
            ticket_id=_uuid(message, 'ticket_id'),
            seller_id=_uuid(message, 'seller_id'),
            # Through str so JSON numbers never become binary floats
            price=to_amount(str(raw_price)),
            seller_signature=_str(message, 'seller_signature'),
            listing_address=message.get('listing_address'),
        )

    async def _handle_cancel_listing(self, message: Dict[str, Any]) -> None:
        assert self.cancel_listing_use_case is not None
        await self.cancel_listing_use_case.execute(
            listing_id=_uuid(message, 'listing_id'),
            seller_id=_uuid(message, 'seller_id'),
        )

    async def _handle_fulfill_listing(self, message: Dict[str, Any]) -> None:
        assert self.fulfill_listing_use_case is not None
        await self.fulfill_listing_use_case.execute(
            listing_id=_uuid(message, 'listing_id'),
            buyer_id=_uuid(message, 'buyer_id'),
            transaction_hash=_str(message, 'transaction_hash'),
        )

    # ========== Ledger Callbacks ==========

    async def _handle_transaction_finalized(self, message: Dict[str, Any]) -> None:
        assert self.reconcile_ledger_state_use_case is not None
        await self.reconcile_ledger_state_use_case.reconcile_transaction(
            transaction_hash=_str(message, 'transaction_hash')
        )
