import pytest
from uuid_utils.compat import uuid7

from src.platform.config.core_setting import settings
from src.service.settlement.domain.value_object.mint_request import MintRequest, mint_nonce


@pytest.mark.unit
class TestMintNonce:
    def test_stable_per_unit(self) -> None:
        order_id = uuid7()

        assert mint_nonce(order_id=order_id, unit_index=0) == mint_nonce(
            order_id=order_id, unit_index=0
        )
        assert mint_nonce(order_id=order_id, unit_index=0) != mint_nonce(
            order_id=order_id, unit_index=1
        )
        assert mint_nonce(order_id=order_id, unit_index=2) == f'{order_id}:2'


@pytest.mark.unit
class TestMintRequest:
    def test_metadata(self) -> None:
        order_id = uuid7()

        request = MintRequest.for_unit(
            order_id=order_id,
            unit_index=1,
            token_id=42,
            event_title='Rock Night',
            event_date='2026-12-01T20:00:00+00:00',
            event_location='Taipei Arena',
            creator_wallet='OrgWallet',
        )

        assert request.nonce == f'{order_id}:1'
        assert request.metadata['name'] == 'Rock Night #42'
        assert request.metadata['symbol'] == settings.NFT_SYMBOL
        assert request.metadata['uri'].endswith(f'/{order_id}/1.json')
        assert request.metadata['seller_fee_basis_points'] == settings.NFT_SELLER_FEE_BASIS_POINTS
        assert {'trait_type': 'Location', 'value': 'Taipei Arena'} in request.metadata['attributes']
        assert {'trait_type': 'Ticket', 'value': '42'} in request.metadata['attributes']
        assert request.metadata['creators'] == [{'address': 'OrgWallet', 'share': 100}]

    def test_unknown_location_and_no_creator(self) -> None:
        request = MintRequest.for_unit(
            order_id=uuid7(),
            unit_index=0,
            token_id=1,
            event_title='Meetup',
            event_date='2026-12-01T20:00:00+00:00',
            event_location=None,
            creator_wallet=None,
        )

        assert {'trait_type': 'Location', 'value': 'TBA'} in request.metadata['attributes']
        assert 'creators' not in request.metadata
