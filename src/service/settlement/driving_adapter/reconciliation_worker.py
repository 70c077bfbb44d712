"""
Reconciliation Worker

Runs ReconcileLedgerStateUseCase.run_once on a fixed interval until
cancelled. A failed sweep is logged and the next one runs on schedule.
"""

from typing import Optional

import anyio

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.app.command.reconcile_ledger_state_use_case import (
    ReconcileLedgerStateUseCase,
)
from src.service.settlement.app.dto.reconciliation_report import ReconciliationReport


class ReconciliationWorker:
    def __init__(
        self,
        *,
        use_case: ReconcileLedgerStateUseCase,
        interval_seconds: Optional[float] = None,
    ) -> None:
        self.use_case = use_case
        self.interval_seconds = interval_seconds or settings.RECONCILE_INTERVAL_SECONDS

    async def run_once(self) -> Optional[ReconciliationReport]:
        try:
            return await self.use_case.run_once()
        except Exception as e:
            metrics.record_reconciliation(result='crashed', corrections={})
            Logger.base.exception(f'💥 [RECONCILE] Sweep crashed: {e}')
            return None

    async def run_forever(self) -> None:
        Logger.base.info(f'🔄 [RECONCILE] Worker started (every {self.interval_seconds}s)')
        while True:
            await self.run_once()
            await anyio.sleep(self.interval_seconds)
