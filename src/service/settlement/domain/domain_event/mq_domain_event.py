from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class MqDomainEvent(Protocol):
    """Minimum shape of anything published to Kafka"""

    @property
    def aggregate_id(self) -> UUID:
        """Partition key (order_id / listing_id)"""
        ...

    @property
    def occurred_at(self) -> datetime: ...

    def to_message(self) -> dict[str, Any]: ...
