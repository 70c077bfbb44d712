from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from opentelemetry import trace

from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import (
    NotFoundError,
    UniqueViolationError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.domain.entity.listing_entity import Listing
from src.service.settlement.domain.enum.listing_status import ListingStatus
from src.service.settlement.domain.exceptions import AlreadyListedError


class CreateListingUseCase:
    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory
        self.tracer = trace.get_tracer(__name__)

    @Logger.io
    async def execute(
        self,
        *,
        ticket_id: UUID,
        seller_id: UUID,
        price: Decimal,
        seller_signature: str,
        listing_address: Optional[str] = None,
    ) -> Listing:
        """
        Raises:
            NotFoundError: unknown ticket
            UnauthorizedActorError: seller does not own the ticket
            ValidationError: ticket invalid/used, event started, bad price or signature
            AlreadyListedError: the NFT already has an open listing
        """
        with self.tracer.start_as_current_span(
            'use_case.create_listing',
            attributes={'ticket.id': str(ticket_id), 'listing.seller_id': str(seller_id)},
        ):
            async with self.uow_factory() as uow:
                ticket = await uow.ticket_command_repo.get_by_id(ticket_id=ticket_id)
                if not ticket:
                    raise NotFoundError(f'Ticket {ticket_id} not found')
                ticket.ensure_listable_by(seller_id=seller_id)

                event = await uow.event_inventory_repo.get_by_id(event_id=ticket.event_id)
                if not event:
                    raise NotFoundError(f'Event {ticket.event_id} not found')
                if event.has_started(now=datetime.now(timezone.utc)):
                    raise ValidationError('Cannot list tickets for past events')

                listing = Listing.create(
                    ticket_id=ticket.id,
                    nft_mint_address=ticket.nft_mint_address,
                    seller_id=seller_id,
                    price=price,
                    original_price=event.price,
                    seller_signature=seller_signature,
                    listing_address=listing_address,
                )

                if await uow.listing_command_repo.get_open_by_nft(
                    nft_mint_address=ticket.nft_mint_address
                ):
                    raise AlreadyListedError(nft_mint_address=ticket.nft_mint_address)

                try:
                    listing = await uow.listing_command_repo.create(listing=listing)
                except UniqueViolationError as e:
                    # Concurrent create for the same NFT won
                    raise AlreadyListedError(nft_mint_address=ticket.nft_mint_address) from e
                await uow.commit()

            metrics.record_listing_transition(status=ListingStatus.ACTIVE)
            Logger.base.info(
                f'🏷️ [LISTING] {listing.id} created for {ticket.nft_mint_address} at {listing.price}'
            )
            return listing
