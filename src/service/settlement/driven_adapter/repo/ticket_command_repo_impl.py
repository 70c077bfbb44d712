from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.sqlalchemy_helper import as_utc, flush_new
from src.platform.logging.loguru_io import Logger
from src.service.settlement.app.interface.i_ticket_command_repo import ITicketCommandRepo
from src.service.settlement.domain.entity.ticket_entity import Ticket
from src.service.settlement.domain.enum.mint_status import MintStatus
from src.service.settlement.driven_adapter.model.ticket_model import TicketModel


class TicketCommandRepoImpl(ITicketCommandRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _model_to_entity(model: TicketModel) -> Ticket:
        return Ticket(
            id=model.id,
            order_id=model.order_id,
            event_id=model.event_id,
            owner_id=model.owner_id,
            unit_index=model.unit_index,
            token_id=model.token_id,
            nft_mint_address=model.nft_mint_address,
            mint_transaction_hash=model.mint_transaction_hash,
            mint_status=MintStatus(model.mint_status),
            is_valid=model.is_valid,
            is_used=model.is_used,
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )

    @Logger.io
    async def create(self, *, ticket: Ticket) -> Ticket:
        now = datetime.now(timezone.utc)
        model = TicketModel(
            id=ticket.id,
            order_id=ticket.order_id,
            event_id=ticket.event_id,
            owner_id=ticket.owner_id,
            unit_index=ticket.unit_index,
            token_id=ticket.token_id,
            nft_mint_address=ticket.nft_mint_address,
            mint_transaction_hash=ticket.mint_transaction_hash,
            mint_status=ticket.mint_status.value,
            is_valid=ticket.is_valid,
            is_used=ticket.is_used,
            created_at=now,
            updated_at=now,
        )
        await flush_new(
            self.session,
            model,
            conflict_message=(
                f'Ticket for order {ticket.order_id} unit {ticket.unit_index} '
                f'or mint {ticket.nft_mint_address} already recorded'
            ),
        )
        return self._model_to_entity(model)

    @Logger.io
    async def get_by_id(self, *, ticket_id: UUID) -> Ticket | None:
        model = await self.session.get(TicketModel, ticket_id, populate_existing=True)
        return self._model_to_entity(model) if model else None

    @Logger.io
    async def get_by_mint_transaction(self, *, transaction_hash: str) -> Ticket | None:
        result = await self.session.execute(
            select(TicketModel).where(TicketModel.mint_transaction_hash == transaction_hash)
        )
        model = result.scalars().first()
        return self._model_to_entity(model) if model else None

    @Logger.io
    async def list_by_order(self, *, order_id: UUID) -> list[Ticket]:
        result = await self.session.execute(
            select(TicketModel)
            .where(TicketModel.order_id == order_id)
            .order_by(TicketModel.unit_index)
            .execution_options(populate_existing=True)
        )
        return [self._model_to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def update_mint_status(self, *, ticket_id: UUID, mint_status: MintStatus) -> None:
        await self.session.execute(
            update(TicketModel)
            .where(TicketModel.id == ticket_id)
            .values(mint_status=mint_status.value)
            .execution_options(synchronize_session=False)
        )

    @Logger.io
    async def validate_for_order(self, *, order_id: UUID) -> int:
        result = await self.session.execute(
            update(TicketModel)
            .where(
                TicketModel.order_id == order_id,
                TicketModel.mint_status == MintStatus.CONFIRMED.value,
            )
            .values(is_valid=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount  # type: ignore[attr-defined]

    @Logger.io
    async def invalidate_for_order(self, *, order_id: UUID) -> int:
        result = await self.session.execute(
            update(TicketModel)
            .where(TicketModel.order_id == order_id)
            .values(is_valid=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount  # type: ignore[attr-defined]

    @Logger.io
    async def transfer_ownership(
        self, *, ticket_id: UUID, from_owner_id: UUID, to_owner_id: UUID
    ) -> bool:
        result = await self.session.execute(
            update(TicketModel)
            .where(TicketModel.id == ticket_id, TicketModel.owner_id == from_owner_id)
            .values(owner_id=to_owner_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]
