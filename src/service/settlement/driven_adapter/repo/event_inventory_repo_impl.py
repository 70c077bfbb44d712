from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.sqlalchemy_helper import as_utc
from src.platform.logging.loguru_io import Logger
from src.service.settlement.app.interface.i_event_inventory_repo import IEventInventoryRepo
from src.service.settlement.domain.entity.event_entity import Event
from src.service.settlement.driven_adapter.model.event_model import EventModel
from src.service.settlement.driven_adapter.model.organizer_model import OrganizerModel


class EventInventoryRepoImpl(IEventInventoryRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @Logger.io
    async def get_by_id(self, *, event_id: UUID) -> Event | None:
        result = await self.session.execute(
            select(EventModel, OrganizerModel.wallet_address)
            .outerjoin(OrganizerModel, OrganizerModel.id == EventModel.organizer_id)
            .where(EventModel.id == event_id)
            .execution_options(populate_existing=True)
        )
        row = result.first()
        if row is None:
            return None
        model, organizer_wallet = row
        return Event(
            id=model.id,
            title=model.title,
            price=model.price,
            date=as_utc(model.date),
            tickets_available=model.tickets_available,
            tickets_sold=model.tickets_sold,
            location=model.location,
            organizer_id=model.organizer_id,
            organizer_wallet=organizer_wallet,
        )

    @Logger.io
    async def reserve_tickets(self, *, event_id: UUID, quantity: int) -> bool:
        result = await self.session.execute(
            update(EventModel)
            .where(EventModel.id == event_id, EventModel.tickets_available >= quantity)
            .values(tickets_available=EventModel.tickets_available - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    @Logger.io
    async def release_tickets(self, *, event_id: UUID, quantity: int) -> None:
        await self.session.execute(
            update(EventModel)
            .where(EventModel.id == event_id)
            .values(tickets_available=EventModel.tickets_available + quantity)
            .execution_options(synchronize_session=False)
        )

    @Logger.io
    async def record_sold(self, *, event_id: UUID, quantity: int) -> None:
        await self.session.execute(
            update(EventModel)
            .where(EventModel.id == event_id)
            .values(tickets_sold=EventModel.tickets_sold + quantity)
            .execution_options(synchronize_session=False)
        )
