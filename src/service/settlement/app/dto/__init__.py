from src.service.settlement.app.dto.ledger_dto import MintReceipt, TransferRecord
from src.service.settlement.app.dto.mint_result import MintResult
from src.service.settlement.app.dto.reconciliation_report import ReconciliationReport


__all__ = ['MintReceipt', 'MintResult', 'ReconciliationReport', 'TransferRecord']
