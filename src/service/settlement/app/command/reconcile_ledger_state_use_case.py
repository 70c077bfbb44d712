"""
Reconcile Ledger State Use Case

Periodic sweep that converges database state with the ledger after crashes,
lost messages or slow finality:

1. Expire PENDING orders past their payment window (inventory released)
2. Resume PAID / MINTING orders whose next attempt is due
3. Re-check listings AWAITING_CONFIRMATION; revert them once attempts run out
4. Record the payment split for COMPLETED orders that are missing one

Each entity is handled independently: one failure is logged and counted and
the sweep moves on. A failed order or listing still uses up an attempt and is
backed off, so a persistent error ends in FAILED / back on sale instead of
being retried on every sweep.
"""

from datetime import datetime, timezone
from typing import Optional

from opentelemetry import trace

from src.platform.config.core_setting import settings
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import (
    CustomBaseError,
    LedgerFinalError,
    LedgerTransientError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.service.settlement.app.command.cancel_order_use_case import CancelOrderUseCase
from src.service.settlement.app.command.fulfill_listing_use_case import FulfillListingUseCase
from src.service.settlement.app.command.mint_tickets_use_case import MintTicketsUseCase
from src.service.settlement.app.command.settle_payment_use_case import SettlePaymentUseCase
from src.service.settlement.app.dto.mint_result import MintResult
from src.service.settlement.app.dto.reconciliation_report import ReconciliationReport
from src.service.settlement.domain.entity.listing_entity import Listing
from src.service.settlement.domain.enum.listing_status import ListingStatus
from src.service.settlement.domain.enum.order_status import OrderStatus
from src.service.settlement.domain.value_object.retry_policy import RetryPolicy


class ReconcileLedgerStateUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        cancel_order_use_case: CancelOrderUseCase,
        mint_tickets_use_case: MintTicketsUseCase,
        fulfill_listing_use_case: FulfillListingUseCase,
        settle_payment_use_case: SettlePaymentUseCase,
        retry_policy: Optional[RetryPolicy] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        self.uow_factory = uow_factory
        self.cancel_order_use_case = cancel_order_use_case
        self.mint_tickets_use_case = mint_tickets_use_case
        self.fulfill_listing_use_case = fulfill_listing_use_case
        self.settle_payment_use_case = settle_payment_use_case
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.batch_size = batch_size or settings.RECONCILE_BATCH_SIZE
        self.tracer = trace.get_tracer(__name__)

    @Logger.io
    async def run_once(self, *, now: Optional[datetime] = None) -> ReconciliationReport:
        now = now or datetime.now(timezone.utc)
        with self.tracer.start_as_current_span('use_case.reconcile_ledger_state'):
            report = ReconciliationReport()
            report = report.merge(await self._expire_orders(now=now))
            report = report.merge(await self._resume_orders(now=now))
            report = report.merge(await self._check_listings(now=now))
            report = report.merge(await self._settle_missing())

        metrics.record_reconciliation(
            result='error' if report.errors else 'ok',
            corrections={
                'expired_order': report.expired_orders,
                'completed_order': report.completed_orders,
                'failed_order': report.failed_orders,
                'sold_listing': report.listings_sold,
                'reverted_listing': report.listings_reverted,
                'settled_order': report.settled_orders,
            },
        )
        if report != ReconciliationReport():
            Logger.base.info(f'🔄 [RECONCILE] {report}')
        return report

    @Logger.io
    async def reconcile_transaction(self, *, transaction_hash: str) -> ReconciliationReport:
        """Targeted re-check after a ledger callback for one transaction"""
        with self.tracer.start_as_current_span(
            'use_case.reconcile_transaction', attributes={'ledger.tx': transaction_hash}
        ):
            async with self.uow_factory() as uow:
                ticket = await uow.ticket_command_repo.get_by_mint_transaction(
                    transaction_hash=transaction_hash
                )
                listing = None
                if ticket is None:
                    listing = await uow.listing_command_repo.get_by_pending_transaction(
                        transaction_hash=transaction_hash
                    )

            report = ReconciliationReport()
            if ticket is not None:
                result = await self.mint_tickets_use_case.execute(order_id=ticket.order_id)
                self._count_mint_result(report=report, result=result)
            elif listing is not None:
                report.listings_checked += 1
                await self._check_listing(report=report, listing=listing, track_attempts=False)
            else:
                Logger.base.info(f'🔍 [RECONCILE] No pending work for {transaction_hash}')
            return report

    async def _expire_orders(self, *, now: datetime) -> ReconciliationReport:
        report = ReconciliationReport()
        async with self.uow_factory() as uow:
            orders = await uow.order_command_repo.list_expired_pending(
                now=now, limit=self.batch_size
            )
        for order in orders:
            try:
                if await self.cancel_order_use_case.expire(order_id=order.id, now=now):
                    report.expired_orders += 1
            except CustomBaseError as e:
                report.errors += 1
                Logger.base.error(f'❌ [RECONCILE] Expiring order {order.id}: {e.message}')
        return report

    @staticmethod
    def _count_mint_result(*, report: ReconciliationReport, result: MintResult) -> None:
        if result.order_status == OrderStatus.COMPLETED:
            report.completed_orders += 1
        elif result.order_status == OrderStatus.FAILED:
            report.failed_orders += 1
        else:
            report.resumed_orders += 1

    async def _resume_orders(self, *, now: datetime) -> ReconciliationReport:
        report = ReconciliationReport()
        async with self.uow_factory() as uow:
            orders = await uow.order_command_repo.list_due_for_minting(
                now=now, limit=self.batch_size
            )
        for order in orders:
            try:
                result = await self.mint_tickets_use_case.execute(order_id=order.id)
            except CustomBaseError as e:
                report.errors += 1
                Logger.base.error(f'❌ [RECONCILE] Resuming order {order.id}: {e.message}')
                deferred = await self.mint_tickets_use_case.defer(
                    order_id=order.id, error=e.message
                )
                if deferred is not None and deferred.order_status == OrderStatus.FAILED:
                    report.failed_orders += 1
                continue
            self._count_mint_result(report=report, result=result)
        return report

    async def _check_listings(self, *, now: datetime) -> ReconciliationReport:
        report = ReconciliationReport()
        async with self.uow_factory() as uow:
            listings = await uow.listing_command_repo.list_awaiting_due(
                now=now, limit=self.batch_size
            )
        for listing in listings:
            report.listings_checked += 1
            await self._check_listing(report=report, listing=listing, track_attempts=True)
        return report

    async def _check_listing(
        self, *, report: ReconciliationReport, listing: Listing, track_attempts: bool
    ) -> None:
        assert listing.pending_buyer_id is not None and listing.pending_transaction_hash
        transaction_hash = listing.pending_transaction_hash
        try:
            result = await self.fulfill_listing_use_case.execute(
                listing_id=listing.id,
                buyer_id=listing.pending_buyer_id,
                transaction_hash=transaction_hash,
            )
        except LedgerTransientError:
            result = None
        except LedgerFinalError:
            # Fulfill already put the listing back on sale
            report.listings_reverted += 1
            return
        except CustomBaseError as e:
            report.errors += 1
            Logger.base.error(f'❌ [RECONCILE] Checking listing {listing.id}: {e.message}')
            result = None

        if result is not None and result.status == ListingStatus.SOLD:
            report.listings_sold += 1
            return
        if not track_attempts:
            return

        attempts = listing.confirmation_attempts + 1
        async with self.uow_factory() as uow:
            if self.retry_policy.is_exhausted(attempts):
                reverted = await uow.listing_command_repo.revert_to_active(
                    listing_id=listing.id, transaction_hash=transaction_hash
                )
                if reverted:
                    report.listings_reverted += 1
                    metrics.record_listing_transition(status=ListingStatus.ACTIVE)
                    Logger.base.warning(
                        f'↩️ [RECONCILE] Listing {listing.id} back to active after '
                        f'{attempts} checks of {transaction_hash}'
                    )
            else:
                await uow.listing_command_repo.schedule_confirmation_check(
                    listing_id=listing.id,
                    confirmation_attempts=attempts,
                    next_check_at=self.retry_policy.next_attempt_at(
                        attempt=attempts + 1, now=datetime.now(timezone.utc)
                    ),
                )
            await uow.commit()

    async def _settle_missing(self) -> ReconciliationReport:
        report = ReconciliationReport()
        async with self.uow_factory() as uow:
            orders = await uow.order_command_repo.list_completed_without_distribution(
                limit=self.batch_size
            )
        for order in orders:
            try:
                await self.settle_payment_use_case.execute(order_id=order.id)
                report.settled_orders += 1
            except CustomBaseError as e:
                report.errors += 1
                Logger.base.error(f'❌ [RECONCILE] Settling order {order.id}: {e.message}')
        return report
