"""
Ledger Client Interface

Calls may suspend for chain latency; callers never hold a database
transaction open across them.

Error contract:
- LedgerTransientError: timeout / node unavailable, safe to retry
- LedgerFinalError: the ledger rejected the request for good
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

from src.service.settlement.app.dto.ledger_dto import MintReceipt, TransferRecord
from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus


class ILedgerClient(ABC):
    @abstractmethod
    async def mint(self, *, nonce: str, metadata: dict[str, Any]) -> MintReceipt:
        """Idempotent on nonce: repeating a nonce returns the original receipt"""
        pass

    @abstractmethod
    async def transfer(
        self, *, mint_address: str, from_wallet: str, to_wallet: str, price: Decimal
    ) -> str:
        pass

    @abstractmethod
    async def get_transaction_status(self, *, transaction_hash: str) -> LedgerTxStatus:
        pass

    @abstractmethod
    async def get_transfer(self, *, transaction_hash: str) -> TransferRecord | None:
        """None when the transaction is not an NFT transfer"""
        pass
