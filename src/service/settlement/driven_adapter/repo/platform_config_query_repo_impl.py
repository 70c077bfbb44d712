from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.logging.loguru_io import Logger
from src.service.settlement.app.interface.i_platform_config_query_repo import (
    IPlatformConfigQueryRepo,
)
from src.service.settlement.driven_adapter.model.platform_config_model import (
    PlatformConfigModel,
)


class PlatformConfigQueryRepoImpl(IPlatformConfigQueryRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @Logger.io
    async def get_value(self, *, key: str) -> str | None:
        result = await self.session.execute(
            select(PlatformConfigModel.value).where(PlatformConfigModel.key == key)
        )
        return result.scalar_one_or_none()
