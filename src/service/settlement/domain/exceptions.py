"""
Settlement domain errors

Specialisations of the platform taxonomy so callers can branch on the
category (ValidationError / InventoryError / ConflictError / LedgerError)
while logs keep the precise reason.
"""

from src.platform.exception.exceptions import (
    ConflictError,
    InventoryError,
    LedgerFinalError,
)


class InsufficientInventoryError(InventoryError):
    def __init__(self, *, requested: int, available: int | None = None) -> None:
        detail = f' ({available} left)' if available is not None else ''
        super().__init__(f'Insufficient tickets available for {requested} requested{detail}')
        self.requested = requested
        self.available = available


class InvalidStateTransitionError(ConflictError):
    def __init__(self, *, entity: str, current: str, target: str) -> None:
        super().__init__(f'{entity} cannot move from {current} to {target}')
        self.current = current
        self.target = target


class AlreadyListedError(ConflictError):
    def __init__(self, *, nft_mint_address: str) -> None:
        super().__init__(f'NFT {nft_mint_address} already has an active listing')


class ListingAlreadySoldError(ConflictError):
    def __init__(self, *, listing_id: object) -> None:
        super().__init__(f'Listing {listing_id} has already been sold')


class ListingSettlementInProgressError(ConflictError):
    def __init__(self, *, listing_id: object) -> None:
        super().__init__(f'Listing {listing_id} has a sale awaiting ledger confirmation')


class PaymentRejectedError(LedgerFinalError):
    def __init__(self, *, transaction_hash: str) -> None:
        super().__init__(f'Payment transaction {transaction_hash} failed on the ledger')


class TransferMismatchError(LedgerFinalError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
