"""
Unit of Work Pattern - one database transaction shared by every repository

Architecture:
- UoW owns the session lifecycle and commit/rollback
- Repositories receive the shared session from the UoW
- Use cases open a short UoW per step and never keep it open across a ledger call
"""

from __future__ import annotations

import abc
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.orm_db_setting import Database


if TYPE_CHECKING:
    from src.service.settlement.app.interface.i_event_inventory_repo import IEventInventoryRepo
    from src.service.settlement.app.interface.i_listing_command_repo import IListingCommandRepo
    from src.service.settlement.app.interface.i_order_command_repo import IOrderCommandRepo
    from src.service.settlement.app.interface.i_payment_distribution_repo import (
        IPaymentDistributionRepo,
    )
    from src.service.settlement.app.interface.i_platform_config_query_repo import (
        IPlatformConfigQueryRepo,
    )
    from src.service.settlement.app.interface.i_ticket_command_repo import ITicketCommandRepo
    from src.service.settlement.app.interface.i_user_query_repo import IUserQueryRepo


class AbstractUnitOfWork(abc.ABC):
    """
    Usage:
        async with uow_factory() as uow:
            order = await uow.order_command_repo.create(order=...)
            await uow.commit()

    Leaving the block without commit() rolls back.
    """

    order_command_repo: IOrderCommandRepo
    ticket_command_repo: ITicketCommandRepo
    listing_command_repo: IListingCommandRepo
    payment_distribution_repo: IPaymentDistributionRepo
    event_inventory_repo: IEventInventoryRepo
    platform_config_query_repo: IPlatformConfigQueryRepo
    user_query_repo: IUserQueryRepo

    async def __aenter__(self) -> AbstractUnitOfWork:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.rollback()

    async def commit(self) -> None:
        await self._commit()

    @abc.abstractmethod
    async def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def rollback(self) -> None:
        raise NotImplementedError


UnitOfWorkFactory = Callable[[], AbstractUnitOfWork]


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    def __init__(self, *, database: Database) -> None:
        self._database = database
        self._exit_stack: AsyncExitStack | None = None
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> AbstractUnitOfWork:
        from src.service.settlement.driven_adapter.repo.event_inventory_repo_impl import (
            EventInventoryRepoImpl,
        )
        from src.service.settlement.driven_adapter.repo.listing_command_repo_impl import (
            ListingCommandRepoImpl,
        )
        from src.service.settlement.driven_adapter.repo.order_command_repo_impl import (
            OrderCommandRepoImpl,
        )
        from src.service.settlement.driven_adapter.repo.payment_distribution_repo_impl import (
            PaymentDistributionRepoImpl,
        )
        from src.service.settlement.driven_adapter.repo.platform_config_query_repo_impl import (
            PlatformConfigQueryRepoImpl,
        )
        from src.service.settlement.driven_adapter.repo.ticket_command_repo_impl import (
            TicketCommandRepoImpl,
        )
        from src.service.settlement.driven_adapter.repo.user_query_repo_impl import (
            UserQueryRepoImpl,
        )

        self._exit_stack = AsyncExitStack()
        self.session = await self._exit_stack.enter_async_context(self._database.session())

        # Repositories share the session so the whole block is one transaction
        self.order_command_repo = OrderCommandRepoImpl(session=self.session)
        self.ticket_command_repo = TicketCommandRepoImpl(session=self.session)
        self.listing_command_repo = ListingCommandRepoImpl(session=self.session)
        self.payment_distribution_repo = PaymentDistributionRepoImpl(session=self.session)
        self.event_inventory_repo = EventInventoryRepoImpl(session=self.session)
        self.platform_config_query_repo = PlatformConfigQueryRepoImpl(session=self.session)
        self.user_query_repo = UserQueryRepoImpl(session=self.session)

        return await super().__aenter__()

    async def __aexit__(self, *args: object) -> None:
        try:
            await super().__aexit__(*args)
        finally:
            if self._exit_stack is not None:
                await self._exit_stack.aclose()
            self._exit_stack = None
            self.session = None

    async def _commit(self) -> None:
        assert self.session is not None, 'UnitOfWork used outside of "async with"'
        await self.session.commit()

    async def rollback(self) -> None:
        if self.session is not None:
            await self.session.rollback()


def sqlalchemy_uow_factory(*, database: Database) -> UnitOfWorkFactory:
    def factory() -> AbstractUnitOfWork:
        return SqlAlchemyUnitOfWork(database=database)

    return factory
