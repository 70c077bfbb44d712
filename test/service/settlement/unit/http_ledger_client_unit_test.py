"""
Unit tests for HttpLedgerClient

Test Focus:
1. Request shape (paths, JSON body, bearer auth)
2. Error mapping: timeout / 5xx / 429 → transient, other 4xx → final
3. Not-found handling: unindexed transaction is PENDING, missing transfer is None
"""

from decimal import Decimal
from typing import Callable

import httpx
import orjson
import pytest

from src.platform.exception.exceptions import LedgerFinalError, LedgerTransientError
from src.service.settlement.app.dto.ledger_dto import MintReceipt, TransferRecord
from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus
from src.service.settlement.driven_adapter.ledger.http_ledger_client import HttpLedgerClient


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> HttpLedgerClient:
    return HttpLedgerClient(
        base_url='http://ledger.test/',
        api_key=kwargs.pop('api_key', 'k3y'),
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.unit
class TestMint:
    @pytest.mark.asyncio
    async def test_posts_nonce_and_metadata(self) -> None:
        # Arrange
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={'mint_address': 'MintA', 'transaction_hash': 'tx1'})

        # Act
        receipt = await _client(handler).mint(nonce='order:0', metadata={'name': 'Rock #1'})

        # Assert
        assert receipt == MintReceipt(mint_address='MintA', transaction_hash='tx1')
        request = seen[0]
        assert request.method == 'POST'
        assert request.url.path == '/v1/mints'
        assert request.headers['Authorization'] == 'Bearer k3y'
        assert orjson.loads(request.content) == {'nonce': 'order:0', 'metadata': {'name': 'Rock #1'}}

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={'mint_address': 'MintA', 'transaction_hash': 'tx1'})

        await _client(handler, api_key='').mint(nonce='n', metadata={})

        assert 'Authorization' not in seen[0].headers

    @pytest.mark.asyncio
    @pytest.mark.parametrize('status', [500, 503, 429])
    async def test_unavailable_is_transient(self, status: int) -> None:
        client = _client(lambda request: httpx.Response(status))

        with pytest.raises(LedgerTransientError, match=str(status)):
            await client.mint(nonce='n', metadata={})

    @pytest.mark.asyncio
    @pytest.mark.parametrize('status', [400, 409, 422])
    async def test_rejection_is_final(self, status: int) -> None:
        client = _client(lambda request: httpx.Response(status, text='bad metadata'))

        with pytest.raises(LedgerFinalError, match='bad metadata'):
            await client.mint(nonce='n', metadata={})

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout('slow node', request=request)

        with pytest.raises(LedgerTransientError, match='timed out'):
            await _client(handler).mint(nonce='n', metadata={})

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('refused', request=request)

        with pytest.raises(LedgerTransientError, match='unavailable'):
            await _client(handler).mint(nonce='n', metadata={})

    @pytest.mark.asyncio
    async def test_malformed_response_is_transient(self) -> None:
        client = _client(lambda request: httpx.Response(200, content=b'<html>'))

        with pytest.raises(LedgerTransientError, match='malformed'):
            await client.mint(nonce='n', metadata={})

    @pytest.mark.asyncio
    async def test_missing_field_is_transient(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={'mint_address': 'MintA'}))

        with pytest.raises(LedgerTransientError, match='transaction_hash'):
            await client.mint(nonce='n', metadata={})


@pytest.mark.unit
class TestTransactionStatus:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ('raw', 'expected'),
        [
            ('confirmed', LedgerTxStatus.CONFIRMED),
            ('FAILED', LedgerTxStatus.FAILED),
            ('pending', LedgerTxStatus.PENDING),
        ],
    )
    async def test_parses_status(self, raw: str, expected: LedgerTxStatus) -> None:
        client = _client(lambda request: httpx.Response(200, json={'status': raw}))

        assert await client.get_transaction_status(transaction_hash='tx1') == expected

    @pytest.mark.asyncio
    async def test_unindexed_transaction_is_pending(self) -> None:
        client = _client(lambda request: httpx.Response(404))

        assert await client.get_transaction_status(transaction_hash='tx1') == LedgerTxStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_status_is_transient(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={'status': 'finalizing'}))

        with pytest.raises(LedgerTransientError, match='finalizing'):
            await client.get_transaction_status(transaction_hash='tx1')


@pytest.mark.unit
class TestTransfers:
    @pytest.mark.asyncio
    async def test_get_transfer(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == '/v1/transactions/tx9/transfer'
            return httpx.Response(
                200,
                json={
                    'mint_address': 'MintA',
                    'from_wallet': 'Seller',
                    'to_wallet': 'Buyer',
                    'price': '25.5',
                },
            )

        record = await _client(handler).get_transfer(transaction_hash='tx9')

        assert record == TransferRecord(
            transaction_hash='tx9',
            mint_address='MintA',
            from_wallet='Seller',
            to_wallet='Buyer',
            price=Decimal('25.5'),
        )

    @pytest.mark.asyncio
    async def test_unknown_transfer_is_none(self) -> None:
        client = _client(lambda request: httpx.Response(404))

        assert await client.get_transfer(transaction_hash='tx9') is None

    @pytest.mark.asyncio
    async def test_transfer_sends_price_as_string(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={'transaction_hash': 'txT'})

        tx = await _client(handler).transfer(
            mint_address='MintA', from_wallet='Seller', to_wallet='Buyer', price=Decimal('12.50')
        )

        assert tx == 'txT'
        assert orjson.loads(seen[0].content)['price'] == '12.50'

    @pytest.mark.asyncio
    async def test_not_found_is_final_for_writes(self) -> None:
        client = _client(lambda request: httpx.Response(404))

        with pytest.raises(LedgerFinalError):
            await client.transfer(
                mint_address='MintA', from_wallet='Seller', to_wallet='Buyer', price=Decimal('1')
            )
