from enum import StrEnum


class OrderStatus(StrEnum):
    PENDING = 'pending'
    PAID = 'paid'
    MINTING = 'minting'
    COMPLETED = 'completed'
    FAILED = 'failed'
    CANCELLED = 'cancelled'

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_ORDER_STATUSES


TERMINAL_ORDER_STATUSES = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.FAILED, OrderStatus.CANCELLED}
)

# Allowed source states for every transition (enforced by conditional UPDATEs)
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PAID: frozenset({OrderStatus.PENDING}),
    OrderStatus.MINTING: frozenset({OrderStatus.PAID}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.MINTING}),
    OrderStatus.FAILED: frozenset({OrderStatus.PAID, OrderStatus.MINTING}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.PENDING}),
}
