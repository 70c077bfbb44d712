from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.sqlalchemy_helper import as_utc, flush_new
from src.platform.logging.loguru_io import Logger
from src.service.settlement.app.interface.i_payment_distribution_repo import (
    IPaymentDistributionRepo,
)
from src.service.settlement.domain.entity.payment_distribution_entity import (
    PaymentDistribution,
    ResaleDistribution,
)
from src.service.settlement.driven_adapter.model.payment_distribution_model import (
    PaymentDistributionModel,
    ResaleDistributionModel,
)


class PaymentDistributionRepoImpl(IPaymentDistributionRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _model_to_entity(model: PaymentDistributionModel) -> PaymentDistribution:
        return PaymentDistribution(
            id=model.id,
            order_id=model.order_id,
            total_amount=model.total_amount,
            organizer_share=model.organizer_share,
            platform_share=model.platform_share,
            platform_wallet=model.platform_wallet,
            organizer_wallet=model.organizer_wallet,
            transaction_hash=model.transaction_hash,
            status=model.status,
            created_at=as_utc(model.created_at),
        )

    @staticmethod
    def _resale_model_to_entity(model: ResaleDistributionModel) -> ResaleDistribution:
        return ResaleDistribution(
            id=model.id,
            listing_id=model.listing_id,
            total_amount=model.total_amount,
            seller_share=model.seller_share,
            platform_share=model.platform_share,
            platform_wallet=model.platform_wallet,
            seller_wallet=model.seller_wallet,
            transaction_hash=model.transaction_hash,
            status=model.status,
            created_at=as_utc(model.created_at),
        )

    @Logger.io
    async def get_by_order(self, *, order_id: UUID) -> PaymentDistribution | None:
        result = await self.session.execute(
            select(PaymentDistributionModel).where(PaymentDistributionModel.order_id == order_id)
        )
        model = result.scalars().first()
        return self._model_to_entity(model) if model else None

    @Logger.io
    async def create(self, *, distribution: PaymentDistribution) -> PaymentDistribution:
        model = PaymentDistributionModel(
            id=distribution.id,
            order_id=distribution.order_id,
            total_amount=distribution.total_amount,
            organizer_share=distribution.organizer_share,
            platform_share=distribution.platform_share,
            organizer_wallet=distribution.organizer_wallet,
            platform_wallet=distribution.platform_wallet,
            transaction_hash=distribution.transaction_hash,
            status=distribution.status,
            created_at=distribution.created_at or datetime.now(timezone.utc),
        )
        await flush_new(
            self.session,
            model,
            conflict_message=f'Payment distribution already recorded for order {distribution.order_id}',
        )
        return self._model_to_entity(model)

    @Logger.io
    async def get_resale_by_listing(self, *, listing_id: UUID) -> ResaleDistribution | None:
        result = await self.session.execute(
            select(ResaleDistributionModel).where(ResaleDistributionModel.listing_id == listing_id)
        )
        model = result.scalars().first()
        return self._resale_model_to_entity(model) if model else None

    @Logger.io
    async def create_resale(self, *, distribution: ResaleDistribution) -> ResaleDistribution:
        model = ResaleDistributionModel(
            id=distribution.id,
            listing_id=distribution.listing_id,
            total_amount=distribution.total_amount,
            seller_share=distribution.seller_share,
            platform_share=distribution.platform_share,
            seller_wallet=distribution.seller_wallet,
            platform_wallet=distribution.platform_wallet,
            transaction_hash=distribution.transaction_hash,
            status=distribution.status,
            created_at=distribution.created_at or datetime.now(timezone.utc),
        )
        await flush_new(
            self.session,
            model,
            conflict_message=f'Resale distribution already recorded for listing {distribution.listing_id}',
        )
        return self._resale_model_to_entity(model)
