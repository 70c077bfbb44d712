"""
https://python-dependency-injector.ets-labs.org/index.html

Use cases are stateless Singletons: each call opens its own short unit of work
from uow_factory, so the same instance is safe to share between the Kafka
consumer portal loop and the reconciliation loop.
"""

from dependency_injector import containers, providers

from src.platform.config.core_setting import Settings
from src.platform.database.orm_db_setting import Database
from src.platform.database.unit_of_work import sqlalchemy_uow_factory
from src.service.settlement.app.command.cancel_listing_use_case import CancelListingUseCase
from src.service.settlement.app.command.cancel_order_use_case import CancelOrderUseCase
from src.service.settlement.app.command.confirm_payment_use_case import ConfirmPaymentUseCase
from src.service.settlement.app.command.create_listing_use_case import CreateListingUseCase
from src.service.settlement.app.command.fulfill_listing_use_case import FulfillListingUseCase
from src.service.settlement.app.command.mint_tickets_use_case import MintTicketsUseCase
from src.service.settlement.app.command.reconcile_ledger_state_use_case import (
    ReconcileLedgerStateUseCase,
)
from src.service.settlement.app.command.settle_payment_use_case import SettlePaymentUseCase
from src.service.settlement.app.command.submit_order_use_case import SubmitOrderUseCase
from src.service.settlement.domain.value_object.retry_policy import RetryPolicy
from src.service.settlement.driven_adapter.ledger.http_ledger_client import HttpLedgerClient
from src.service.settlement.driven_adapter.message_queue.order_event_publisher_impl import (
    OrderEventPublisherImpl,
)


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Database (AsyncEngineManager picks up DATABASE_URL_ASYNC)
    database = providers.Singleton(Database)
    uow_factory = providers.Singleton(sqlalchemy_uow_factory, database=database)

    # Ledger + retry policy
    retry_policy = providers.Singleton(RetryPolicy.from_settings)
    ledger_client = providers.Singleton(HttpLedgerClient)

    # Message Queue Publishers
    order_event_publisher = providers.Singleton(OrderEventPublisherImpl)

    # Order Use Cases
    submit_order_use_case = providers.Singleton(SubmitOrderUseCase, uow_factory=uow_factory)
    confirm_payment_use_case = providers.Singleton(
        ConfirmPaymentUseCase,
        uow_factory=uow_factory,
        ledger_client=ledger_client,
        event_publisher=order_event_publisher,
    )
    cancel_order_use_case = providers.Singleton(CancelOrderUseCase, uow_factory=uow_factory)
    settle_payment_use_case = providers.Singleton(SettlePaymentUseCase, uow_factory=uow_factory)
    mint_tickets_use_case = providers.Singleton(
        MintTicketsUseCase,
        uow_factory=uow_factory,
        ledger_client=ledger_client,
        settle_payment_use_case=settle_payment_use_case,
        retry_policy=retry_policy,
    )

    # Listing Use Cases
    create_listing_use_case = providers.Singleton(CreateListingUseCase, uow_factory=uow_factory)
    cancel_listing_use_case = providers.Singleton(CancelListingUseCase, uow_factory=uow_factory)
    fulfill_listing_use_case = providers.Singleton(
        FulfillListingUseCase,
        uow_factory=uow_factory,
        ledger_client=ledger_client,
        retry_policy=retry_policy,
    )

    # Reconciliation
    reconcile_ledger_state_use_case = providers.Singleton(
        ReconcileLedgerStateUseCase,
        uow_factory=uow_factory,
        cancel_order_use_case=cancel_order_use_case,
        mint_tickets_use_case=mint_tickets_use_case,
        fulfill_listing_use_case=fulfill_listing_use_case,
        settle_payment_use_case=settle_payment_use_case,
        retry_policy=retry_policy,
    )


container = Container()


def setup() -> None:
    container.config_service()


def cleanup() -> None:
    container.reset_singletons()
