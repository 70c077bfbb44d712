from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import attrs


@attrs.define
class Event:
    """Read-side snapshot of the event with the organizer payout wallet resolved"""

    id: UUID
    title: str
    price: Decimal
    date: datetime
    tickets_available: int
    tickets_sold: int
    location: Optional[str] = None
    organizer_id: Optional[UUID] = None
    organizer_wallet: Optional[str] = None

    def has_started(self, *, now: datetime) -> bool:
        return self.date <= now
