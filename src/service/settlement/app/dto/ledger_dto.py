from decimal import Decimal

import attrs


@attrs.frozen
class MintReceipt:
    mint_address: str
    transaction_hash: str


@attrs.frozen
class TransferRecord:
    """What the ledger says a transaction actually moved"""

    transaction_hash: str
    mint_address: str
    from_wallet: str
    to_wallet: str
    price: Decimal
