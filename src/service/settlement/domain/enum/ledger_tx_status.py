from enum import StrEnum


class LedgerTxStatus(StrEnum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    FAILED = 'failed'
