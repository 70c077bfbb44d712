"""
HTTP Ledger Gateway Client

Talks to the chain gateway over JSON/HTTP:
- POST /v1/mints                           {nonce, metadata} → {mint_address, transaction_hash}
- POST /v1/transfers                       {mint_address, from_wallet, to_wallet, price}
                                            → {transaction_hash}
- GET  /v1/transactions/{hash}             → {status: pending | confirmed | failed}
- GET  /v1/transactions/{hash}/transfer    → {mint_address, from_wallet, to_wallet, price}

Error mapping:
- timeout, connection error, 5xx, 429 → LedgerTransientError
- any other 4xx                        → LedgerFinalError
"""

from decimal import Decimal
import time
from typing import Any, Optional

import httpx
import orjson

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import LedgerFinalError, LedgerTransientError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.app.dto.ledger_dto import MintReceipt, TransferRecord
from src.service.settlement.app.interface.i_ledger_client import ILedgerClient
from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus


class HttpLedgerClient(ILedgerClient):
    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.LEDGER_GATEWAY_URL).rstrip('/')
        self.timeout = timeout or settings.LEDGER_REQUEST_TIMEOUT
        key = api_key if api_key is not None else settings.LEDGER_API_KEY.get_secret_value()
        self.headers = {'Content-Type': 'application/json'}
        if key:
            self.headers['Authorization'] = f'Bearer {key}'
        self._transport = transport

    async def _request(
        self,
        *,
        operation: str,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Optional[dict[str, Any]]:
        started = time.monotonic()
        result = 'ok'
        try:
            # One client per call: the consumer portal and the watcher run on different loops
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    content=orjson.dumps(payload) if payload is not None else None,
                )
        except httpx.TimeoutException as e:
            result = 'timeout'
            raise LedgerTransientError(f'Ledger {operation} timed out') from e
        except httpx.TransportError as e:
            result = 'unavailable'
            raise LedgerTransientError(f'Ledger {operation} unavailable: {e}') from e
        finally:
            if result != 'ok':
                metrics.record_ledger_call(
                    operation=operation, result=result, duration=time.monotonic() - started
                )

        status = response.status_code
        if allow_not_found and status == 404:
            result = 'not_found'
        elif status >= 500 or status == 429:
            result = 'unavailable'
        elif status >= 400:
            result = 'rejected'
        metrics.record_ledger_call(
            operation=operation, result=result, duration=time.monotonic() - started
        )

        if result == 'not_found':
            return None
        if result == 'unavailable':
            raise LedgerTransientError(f'Ledger {operation} returned {status}')
        if result == 'rejected':
            raise LedgerFinalError(f'Ledger rejected {operation} ({status}): {response.text}')

        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise LedgerTransientError(f'Ledger {operation} returned malformed JSON') from e
        if not isinstance(data, dict):
            raise LedgerTransientError(f'Ledger {operation} returned an unexpected payload')
        return data

    @staticmethod
    def _field(data: dict[str, Any], name: str, *, operation: str) -> Any:
        try:
            return data[name]
        except KeyError as e:
            raise LedgerTransientError(f'Ledger {operation} response missing {name!r}') from e

    @Logger.io
    async def mint(self, *, nonce: str, metadata: dict[str, Any]) -> MintReceipt:
        data = await self._request(
            operation='mint',
            method='POST',
            path='/v1/mints',
            payload={'nonce': nonce, 'metadata': metadata},
        )
        assert data is not None
        return MintReceipt(
            mint_address=self._field(data, 'mint_address', operation='mint'),
            transaction_hash=self._field(data, 'transaction_hash', operation='mint'),
        )

    @Logger.io
    async def transfer(
        self, *, mint_address: str, from_wallet: str, to_wallet: str, price: Decimal
    ) -> str:
        data = await self._request(
            operation='transfer',
            method='POST',
            path='/v1/transfers',
            payload={
                'mint_address': mint_address,
                'from_wallet': from_wallet,
                'to_wallet': to_wallet,
                'price': str(price),
            },
        )
        assert data is not None
        return self._field(data, 'transaction_hash', operation='transfer')

    @Logger.io
    async def get_transaction_status(self, *, transaction_hash: str) -> LedgerTxStatus:
        data = await self._request(
            operation='get_transaction_status',
            method='GET',
            path=f'/v1/transactions/{transaction_hash}',
            allow_not_found=True,
        )
        if data is None:
            # Not indexed yet
            return LedgerTxStatus.PENDING
        raw = self._field(data, 'status', operation='get_transaction_status')
        try:
            return LedgerTxStatus(str(raw).lower())
        except ValueError as e:
            raise LedgerTransientError(f'Unknown ledger transaction status {raw!r}') from e

    @Logger.io
    async def get_transfer(self, *, transaction_hash: str) -> Optional[TransferRecord]:
        data = await self._request(
            operation='get_transfer',
            method='GET',
            path=f'/v1/transactions/{transaction_hash}/transfer',
            allow_not_found=True,
        )
        if data is None:
            return None
        return TransferRecord(
            transaction_hash=transaction_hash,
            mint_address=self._field(data, 'mint_address', operation='get_transfer'),
            from_wallet=self._field(data, 'from_wallet', operation='get_transfer'),
            to_wallet=self._field(data, 'to_wallet', operation='get_transfer'),
            price=Decimal(str(self._field(data, 'price', operation='get_transfer'))),
        )
