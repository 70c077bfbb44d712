from typing import Any
from uuid import UUID

import attrs

from src.platform.config.core_setting import settings


def mint_nonce(*, order_id: UUID, unit_index: int) -> str:
    """Deterministic per-unit nonce; the ledger refuses to mint the same nonce twice"""
    return f'{order_id}:{unit_index}'


@attrs.frozen
class MintRequest:
    nonce: str
    metadata: dict[str, Any]

    @classmethod
    def for_unit(
        cls,
        *,
        order_id: UUID,
        unit_index: int,
        token_id: int,
        event_title: str,
        event_date: str,
        event_location: str | None,
        creator_wallet: str | None,
    ) -> 'MintRequest':
        metadata: dict[str, Any] = {
            'name': f'{event_title} #{token_id}',
            'symbol': settings.NFT_SYMBOL,
            'uri': f'{settings.NFT_METADATA_BASE_URI}/{order_id}/{unit_index}.json',
            'seller_fee_basis_points': settings.NFT_SELLER_FEE_BASIS_POINTS,
            'attributes': [
                {'trait_type': 'Event', 'value': event_title},
                {'trait_type': 'Date', 'value': event_date},
                {'trait_type': 'Location', 'value': event_location or 'TBA'},
                {'trait_type': 'Ticket', 'value': str(token_id)},
            ],
        }
        if creator_wallet:
            metadata['creators'] = [{'address': creator_wallet, 'share': 100}]
        return cls(nonce=mint_nonce(order_id=order_id, unit_index=unit_index), metadata=metadata)
