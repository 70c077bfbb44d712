"""Runtime fee/wallet lookups: PlatformConfig rows win over environment defaults"""

from decimal import Decimal

from src.platform.config.core_setting import settings
from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import ValidationError
from src.service.settlement.domain.enum.platform_config_key import PlatformConfigKey
from src.service.settlement.domain.value_object.money import parse_fee_rate


async def resolve_platform_fee_rate(uow: AbstractUnitOfWork) -> Decimal:
    raw = await uow.platform_config_query_repo.get_value(
        key=PlatformConfigKey.PLATFORM_FEE_PERCENTAGE
    )
    return parse_fee_rate(raw if raw is not None else settings.PLATFORM_FEE_PERCENTAGE)


async def resolve_resale_fee_rate(uow: AbstractUnitOfWork) -> Decimal | None:
    """None when no resale fee is configured (no split is recorded then)"""
    raw = await uow.platform_config_query_repo.get_value(
        key=PlatformConfigKey.RESALE_FEE_PERCENTAGE
    )
    return parse_fee_rate(raw) if raw is not None else None


async def resolve_platform_wallet(uow: AbstractUnitOfWork) -> str:
    wallet = await uow.platform_config_query_repo.get_value(
        key=PlatformConfigKey.PLATFORM_WALLET_ADDRESS
    )
    wallet = wallet or settings.PLATFORM_WALLET_ADDRESS
    if not wallet:
        raise ValidationError('Platform wallet address is not configured')
    return wallet
