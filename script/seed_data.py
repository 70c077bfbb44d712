#!/usr/bin/env python3
"""
Database Seed Script
Populate local development data

Features:
1. Ensure Tables - create missing tables (alembic remains the source of truth)
2. Create Users - buyer, reseller and organizer accounts with wallets
3. Create Organizer + Event - one organized event and one community event
4. Platform Config - fee and wallet rows read by settlement

Notes:
- Idempotent: rows are merged on fixed ids, re-running does not duplicate
- Run after `migrate` (or against sqlite via DATABASE_URL_OVERRIDE)
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from src.platform.config.core_setting import settings
from src.platform.database.orm_db_setting import create_db_and_tables, get_session_maker
from src.platform.logging.loguru_io import Logger
from src.service.settlement.domain.enum.platform_config_key import PlatformConfigKey
from src.service.settlement.driven_adapter.model import (
    CategoryModel,
    EventModel,
    OrganizerModel,
    PlatformConfigModel,
    UserModel,
)


ORGANIZER_USER_ID = UUID('01900000-0000-7000-8000-000000000001')
BUYER_ID = UUID('01900000-0000-7000-8000-000000000002')
RESELLER_ID = UUID('01900000-0000-7000-8000-000000000003')
ORGANIZER_ID = UUID('01900000-0000-7000-8000-000000000010')
CATEGORY_ID = UUID('01900000-0000-7000-8000-000000000020')
EVENT_ID = UUID('01900000-0000-7000-8000-000000000100')
COMMUNITY_EVENT_ID = UUID('01900000-0000-7000-8000-000000000101')

TEST_USERS = [
    (ORGANIZER_USER_ID, 'o@t.com', 'init organizer', 'OrgWa11et1111111111111111111111111111111111'),
    (BUYER_ID, 'b@t.com', 'init buyer', 'BuyerWa11et11111111111111111111111111111111'),
    (RESELLER_ID, 'r@t.com', 'init reseller', 'Rese11erWa11et111111111111111111111111111111'),
]


async def seed() -> None:
    await create_db_and_tables()
    event_date = datetime.now(timezone.utc) + timedelta(days=30)

    async with get_session_maker()() as session:
        for user_id, email, name, wallet in TEST_USERS:
            await session.merge(UserModel(id=user_id, email=email, name=name, wallet_address=wallet))
        await session.flush()
        await session.merge(
            OrganizerModel(
                id=ORGANIZER_ID,
                user_id=ORGANIZER_USER_ID,
                name='Init Promotions',
                wallet_address=TEST_USERS[0][3],
            )
        )
        await session.merge(CategoryModel(id=CATEGORY_ID, name='Concert'))
        await session.flush()
        await session.merge(
            EventModel(
                id=EVENT_ID,
                title='Init Rock Night',
                description='Seeded event with an organizer',
                date=event_date,
                location='Taipei Arena',
                price=Decimal('10'),
                tickets_available=500,
                tickets_sold=0,
                organizer_id=ORGANIZER_ID,
                category_id=CATEGORY_ID,
            )
        )
        await session.merge(
            EventModel(
                id=COMMUNITY_EVENT_ID,
                title='Init Community Meetup',
                date=event_date,
                price=Decimal('2.5'),
                tickets_available=50,
                tickets_sold=0,
            )
        )
        await session.merge(
            PlatformConfigModel(
                key=PlatformConfigKey.PLATFORM_FEE_PERCENTAGE,
                value=str(settings.PLATFORM_FEE_PERCENTAGE),
            )
        )
        await session.merge(
            PlatformConfigModel(
                key=PlatformConfigKey.PLATFORM_WALLET_ADDRESS,
                value=settings.PLATFORM_WALLET_ADDRESS,
            )
        )
        await session.commit()

    Logger.base.info(f'🌱 [SEED] {len(TEST_USERS)} users, 2 events ({EVENT_ID}, {COMMUNITY_EVENT_ID})')


if __name__ == '__main__':
    asyncio.run(seed())
