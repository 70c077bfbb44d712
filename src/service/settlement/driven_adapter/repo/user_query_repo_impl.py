from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.logging.loguru_io import Logger
from src.service.settlement.app.interface.i_user_query_repo import IUserQueryRepo
from src.service.settlement.domain.entity.user_entity import User
from src.service.settlement.driven_adapter.model.user_model import UserModel


class UserQueryRepoImpl(IUserQueryRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @Logger.io
    async def get_by_id(self, *, user_id: UUID) -> User | None:
        model = await self.session.get(UserModel, user_id)
        if not model:
            return None
        return User(id=model.id, wallet_address=model.wallet_address, name=model.name)
