from src.service.settlement.domain.enum.ledger_tx_status import LedgerTxStatus
from src.service.settlement.domain.enum.listing_status import ListingStatus
from src.service.settlement.domain.enum.mint_status import MintStatus
from src.service.settlement.domain.enum.order_status import OrderStatus


__all__ = ['LedgerTxStatus', 'ListingStatus', 'MintStatus', 'OrderStatus']
