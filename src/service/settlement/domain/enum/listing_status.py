from enum import StrEnum


class ListingStatus(StrEnum):
    ACTIVE = 'active'
    AWAITING_CONFIRMATION = 'awaiting_confirmation'  # sale tx seen, not yet final
    SOLD = 'sold'
    CANCELLED = 'cancelled'

    @property
    def is_open(self) -> bool:
        return self in OPEN_LISTING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not self.is_open


OPEN_LISTING_STATUSES = frozenset({ListingStatus.ACTIVE, ListingStatus.AWAITING_CONFIRMATION})
