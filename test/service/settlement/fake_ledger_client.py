"""
Deterministic in-memory ledger for integration tests.

Mints are idempotent on nonce like the real gateway; transaction statuses and
transfer records are set up by the test.
"""

from decimal import Decimal
import hashlib
from typing import Any

from src.platform.exception.exceptions import LedgerError
from src.service.settlement.app.dto.ledger_dto import MintReceipt, TransferRecord
from src.service.settlement.app.interface.i_ledger_client import ILedgerClient
from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:32]


class FakeLedgerClient(ILedgerClient):
    def __init__(self, *, default_status: LedgerTxStatus = LedgerTxStatus.CONFIRMED) -> None:
        self.default_status = default_status
        self.statuses: dict[str, LedgerTxStatus] = {}
        self.transfers: dict[str, TransferRecord] = {}
        self.receipts: dict[str, MintReceipt] = {}
        self.mint_calls: list[str] = []
        self.status_calls: list[str] = []
        # nonce → error raised (once) by the next mint call for that nonce
        self.mint_failures: dict[str, LedgerError] = {}
        self.default_mint_status: LedgerTxStatus | None = None

    # ========== Test setup helpers ==========

    def set_status(self, transaction_hash: str, status: LedgerTxStatus) -> None:
        self.statuses[transaction_hash] = status

    def set_mint_status(self, status: LedgerTxStatus) -> None:
        """Apply a status to every mint transaction issued so far and to later ones"""
        self.default_mint_status = status
        for receipt in self.receipts.values():
            self.statuses[receipt.transaction_hash] = status

    def record_transfer(
        self,
        *,
        transaction_hash: str,
        mint_address: str,
        from_wallet: str,
        to_wallet: str,
        price: Decimal,
        status: LedgerTxStatus = LedgerTxStatus.CONFIRMED,
    ) -> None:
        self.transfers[transaction_hash] = TransferRecord(
            transaction_hash=transaction_hash,
            mint_address=mint_address,
            from_wallet=from_wallet,
            to_wallet=to_wallet,
            price=price,
        )
        self.statuses[transaction_hash] = status

    # ========== ILedgerClient ==========

    async def mint(self, *, nonce: str, metadata: dict[str, Any]) -> MintReceipt:
        self.mint_calls.append(nonce)
        if nonce in self.mint_failures:
            raise self.mint_failures.pop(nonce)
        if nonce not in self.receipts:
            receipt = MintReceipt(
                mint_address=f'Mint{_digest(nonce)}',
                transaction_hash=f'txmint{_digest(nonce)}',
            )
            self.receipts[nonce] = receipt
            status = self.default_mint_status or self.default_status
            self.statuses.setdefault(receipt.transaction_hash, status)
        return self.receipts[nonce]

    async def transfer(
        self, *, mint_address: str, from_wallet: str, to_wallet: str, price: Decimal
    ) -> str:
        transaction_hash = f'txtransfer{_digest(f"{mint_address}:{from_wallet}:{to_wallet}")}'
        self.record_transfer(
            transaction_hash=transaction_hash,
            mint_address=mint_address,
            from_wallet=from_wallet,
            to_wallet=to_wallet,
            price=price,
            status=LedgerTxStatus.PENDING,
        )
        return transaction_hash

    async def get_transaction_status(self, *, transaction_hash: str) -> LedgerTxStatus:
        self.status_calls.append(transaction_hash)
        return self.statuses.get(transaction_hash, self.default_status)

    async def get_transfer(self, *, transaction_hash: str) -> TransferRecord | None:
        return self.transfers.get(transaction_hash)
