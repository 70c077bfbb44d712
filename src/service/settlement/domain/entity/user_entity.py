from typing import Optional
from uuid import UUID

import attrs


@attrs.define
class User:
    id: UUID
    wallet_address: Optional[str] = None
    name: Optional[str] = None
