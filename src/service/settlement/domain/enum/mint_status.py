from enum import StrEnum


class MintStatus(StrEnum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    FAILED = 'failed'
