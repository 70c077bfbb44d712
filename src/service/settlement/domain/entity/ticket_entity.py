from datetime import datetime
from typing import Optional
from uuid import UUID

import attrs

from src.platform.exception.exceptions import UnauthorizedActorError, ValidationError
from src.service.settlement.domain.enum.mint_status import MintStatus


@attrs.define
class Ticket:
    id: UUID
    order_id: UUID
    event_id: UUID
    owner_id: UUID
    unit_index: int
    token_id: int
    nft_mint_address: str
    mint_transaction_hash: Optional[str] = None
    mint_status: MintStatus = MintStatus.PENDING
    is_valid: bool = False
    is_used: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def ensure_listable_by(self, *, seller_id: UUID) -> None:
        if self.owner_id != seller_id:
            raise UnauthorizedActorError('Only the ticket owner can list this ticket')
        if not self.is_valid:
            raise ValidationError('Ticket is not valid and cannot be listed')
        if self.is_used:
            raise ValidationError('Ticket has already been used')
