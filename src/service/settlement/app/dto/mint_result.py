import attrs

from src.service.settlement.domain.enum.order_status import OrderStatus


@attrs.frozen
class MintResult:
    order_status: OrderStatus
    minted_units: int  # tickets recorded so far (pending or confirmed)
    confirmed_units: int
    quantity: int

    @property
    def is_complete(self) -> bool:
        return self.order_status == OrderStatus.COMPLETED
