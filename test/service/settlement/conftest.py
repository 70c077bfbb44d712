"""
Settlement test fixtures

Integration tests run the real SqlAlchemyUnitOfWork and repositories against
a fresh sqlite file per test (conditional UPDATEs, the partial unique index on
open listings and the unique constraints all behave as they do on Postgres).
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from uuid import UUID

import attrs
import pytest
from uuid_utils.compat import uuid7

from src.platform.database.orm_db_setting import AsyncEngineManager, Base, Database
from src.platform.database.unit_of_work import UnitOfWorkFactory, sqlalchemy_uow_factory
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
from src.service.settlement.app.interface.i_order_event_publisher import IOrderEventPublisher
from src.service.settlement.domain.domain_event.order_domain_event import OrderPaidEvent
from src.service.settlement.domain.value_object.retry_policy import RetryPolicy
from src.service.settlement.driven_adapter.model import (
    EventModel,
    OrganizerModel,
    PlatformConfigModel,
    UserModel,
)
from test.service.settlement.fake_ledger_client import FakeLedgerClient


RESALE_BUYER_WALLET = 'Resa1eBuyerWa11et11111111111111111111111111'
BUYER_WALLET = 'BuyerWa11et111111111111111111111111111111111'
ORGANIZER_WALLET = 'OrganizerWa11et1111111111111111111111111111'
EVENT_PRICE = Decimal('10')
EVENT_CAPACITY = 100


@attrs.frozen
class Seed:
    buyer_id: UUID
    resale_buyer_id: UUID
    organizer_user_id: UUID
    organizer_id: UUID
    event_id: UUID
    unorganized_event_id: UUID


class RecordingPublisher(IOrderEventPublisher):
    def __init__(self) -> None:
        self.published: list[OrderPaidEvent] = []

    async def publish_order_paid(self, *, event: OrderPaidEvent) -> None:
        self.published.append(event)


@attrs.define
class SettlementServices:
    """Use cases wired exactly like the DI container, over the test database"""

    ledger: FakeLedgerClient
    publisher: RecordingPublisher
    submit_order: SubmitOrderUseCase
    confirm_payment: ConfirmPaymentUseCase
    cancel_order: CancelOrderUseCase
    settle_payment: SettlePaymentUseCase
    mint_tickets: MintTicketsUseCase
    create_listing: CreateListingUseCase
    cancel_listing: CancelListingUseCase
    fulfill_listing: FulfillListingUseCase
    reconcile: ReconcileLedgerStateUseCase


@pytest.fixture
async def engine_manager(tmp_path: Path) -> AsyncGenerator[AsyncEngineManager, None]:
    manager = AsyncEngineManager(url=f'sqlite+aiosqlite:///{tmp_path / "settlement.db"}')
    async with manager.get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.dispose()


@pytest.fixture
def uow_factory(engine_manager: AsyncEngineManager) -> UnitOfWorkFactory:
    return sqlalchemy_uow_factory(database=Database(engine_manager=engine_manager))


@pytest.fixture
async def seed(engine_manager: AsyncEngineManager) -> Seed:
    buyer_id, resale_buyer_id, organizer_user_id = uuid7(), uuid7(), uuid7()
    organizer_id, event_id, unorganized_event_id = uuid7(), uuid7(), uuid7()
    event_date = datetime.now(timezone.utc) + timedelta(days=30)

    async with engine_manager.get_session_maker()() as session:
        session.add_all(
            [
                UserModel(
                    id=buyer_id, email='buyer@test.com', name='Buyer', wallet_address=BUYER_WALLET
                ),
                UserModel(
                    id=resale_buyer_id,
                    email='resale.buyer@test.com',
                    name='Resale Buyer',
                    wallet_address=RESALE_BUYER_WALLET,
                ),
                UserModel(id=organizer_user_id, email='organizer@test.com', name='Organizer'),
            ]
        )
        await session.flush()
        session.add(
            OrganizerModel(
                id=organizer_id,
                user_id=organizer_user_id,
                name='Live Nation Test',
                wallet_address=ORGANIZER_WALLET,
            )
        )
        await session.flush()
        session.add_all(
            [
                EventModel(
                    id=event_id,
                    title='Rock Night',
                    date=event_date,
                    location='Taipei Arena',
                    price=EVENT_PRICE,
                    tickets_available=EVENT_CAPACITY,
                    tickets_sold=0,
                    organizer_id=organizer_id,
                ),
                EventModel(
                    id=unorganized_event_id,
                    title='Community Meetup',
                    date=event_date,
                    price=EVENT_PRICE,
                    tickets_available=EVENT_CAPACITY,
                    tickets_sold=0,
                ),
            ]
        )
        await session.commit()

    return Seed(
        buyer_id=buyer_id,
        resale_buyer_id=resale_buyer_id,
        organizer_user_id=organizer_user_id,
        organizer_id=organizer_id,
        event_id=event_id,
        unorganized_event_id=unorganized_event_id,
    )


@pytest.fixture
def set_platform_config(engine_manager: AsyncEngineManager):
    async def _set(key: str, value: str) -> None:
        async with engine_manager.get_session_maker()() as session:
            await session.merge(PlatformConfigModel(key=key, value=value))
            await session.commit()

    return _set


@pytest.fixture
def fake_ledger() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(base_delay_seconds=1.0, max_delay_seconds=10.0, max_attempts=3)


@pytest.fixture
def services(
    uow_factory: UnitOfWorkFactory, fake_ledger: FakeLedgerClient, retry_policy: RetryPolicy
) -> SettlementServices:
    publisher = RecordingPublisher()
    settle_payment = SettlePaymentUseCase(uow_factory=uow_factory)
    cancel_order = CancelOrderUseCase(uow_factory=uow_factory)
    mint_tickets = MintTicketsUseCase(
        uow_factory=uow_factory,
        ledger_client=fake_ledger,
        settle_payment_use_case=settle_payment,
        retry_policy=retry_policy,
    )
    fulfill_listing = FulfillListingUseCase(
        uow_factory=uow_factory, ledger_client=fake_ledger, retry_policy=retry_policy
    )
    return SettlementServices(
        ledger=fake_ledger,
        publisher=publisher,
        submit_order=SubmitOrderUseCase(uow_factory=uow_factory),
        confirm_payment=ConfirmPaymentUseCase(
            uow_factory=uow_factory, ledger_client=fake_ledger, event_publisher=publisher
        ),
        cancel_order=cancel_order,
        settle_payment=settle_payment,
        mint_tickets=mint_tickets,
        create_listing=CreateListingUseCase(uow_factory=uow_factory),
        cancel_listing=CancelListingUseCase(uow_factory=uow_factory),
        fulfill_listing=fulfill_listing,
        reconcile=ReconcileLedgerStateUseCase(
            uow_factory=uow_factory,
            cancel_order_use_case=cancel_order,
            mint_tickets_use_case=mint_tickets,
            fulfill_listing_use_case=fulfill_listing,
            settle_payment_use_case=settle_payment,
            retry_policy=retry_policy,
        ),
    )
