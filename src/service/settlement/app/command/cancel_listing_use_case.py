from uuid import UUID

from opentelemetry import trace

from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.domain.entity.listing_entity import Listing
from src.service.settlement.domain.enum.listing_status import ListingStatus
from src.service.settlement.domain.exceptions import (
    ListingAlreadySoldError,
    ListingSettlementInProgressError,
)


class CancelListingUseCase:
    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory
        self.tracer = trace.get_tracer(__name__)

    @Logger.io
    async def execute(self, *, listing_id: UUID, seller_id: UUID) -> Listing:
        """
        Cancelling a cancelled or sold listing returns it unchanged.

        Raises:
            NotFoundError: unknown listing
            UnauthorizedActorError: caller is not the seller
            ListingSettlementInProgressError: a sale is awaiting ledger finality
            ListingAlreadySoldError: a sale was recorded while cancelling
        """
        with self.tracer.start_as_current_span(
            'use_case.cancel_listing', attributes={'listing.id': str(listing_id)}
        ):
            async with self.uow_factory() as uow:
                listing = await uow.listing_command_repo.get_by_id(listing_id=listing_id)
                if not listing:
                    raise NotFoundError(f'Listing {listing_id} not found')
                if not listing.should_cancel(seller_id=seller_id):
                    return listing

                cancelled = await uow.listing_command_repo.mark_cancelled(listing_id=listing_id)
                if cancelled:
                    await uow.commit()
                current = await uow.listing_command_repo.get_by_id(listing_id=listing_id) or listing

            if not cancelled:
                # A buyer got there first
                if current.status == ListingStatus.SOLD:
                    raise ListingAlreadySoldError(listing_id=listing_id)
                if current.status == ListingStatus.AWAITING_CONFIRMATION:
                    raise ListingSettlementInProgressError(listing_id=listing_id)
                return current

            metrics.record_listing_transition(status=ListingStatus.CANCELLED)
            Logger.base.info(f'🚫 [LISTING] {listing_id} cancelled by seller')
            return current
