import attrs


@attrs.define
class ReconciliationReport:
    expired_orders: int = 0
    resumed_orders: int = 0
    completed_orders: int = 0
    failed_orders: int = 0
    listings_checked: int = 0
    listings_sold: int = 0
    listings_reverted: int = 0
    settled_orders: int = 0
    errors: int = 0

    def merge(self, other: 'ReconciliationReport') -> 'ReconciliationReport':
        return ReconciliationReport(
            **{
                field.name: getattr(self, field.name) + getattr(other, field.name)
                for field in attrs.fields(ReconciliationReport)
            }
        )
