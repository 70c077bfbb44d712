"""
Settlement Service - Main Application

Runs the Kafka consumer (thread + BlockingPortal) and the reconciliation
worker side by side in one anyio task group.

    python -m src.service.settlement.main
"""

import signal

import anyio
from anyio.from_thread import start_blocking_portal
import anyio.to_thread
from prometheus_client import start_http_server

from src.platform.config.core_setting import settings
from src.platform.config.di import cleanup, container, setup
from src.platform.database.orm_db_setting import get_engine
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.event_publisher import close_producer
from src.platform.message_queue.kafka_topic_initializer import KafkaTopicInitializer
from src.platform.observability.tracing import TracingConfig
from src.service.settlement.driving_adapter.mq_consumer.settlement_mq_consumer import (
    SettlementConsumer,
)
from src.service.settlement.driving_adapter.reconciliation_worker import ReconciliationWorker


async def run_consumer(consumer: SettlementConsumer) -> None:
    """Run the sync consumer in a worker thread, bridging to async use cases via BlockingPortal"""

    def run_with_portal() -> None:
        with start_blocking_portal() as portal:
            consumer.set_portal(portal)
            consumer.start()

    try:
        await anyio.to_thread.run_sync(run_with_portal, abandon_on_cancel=True)
    finally:
        consumer.stop()


async def main() -> None:
    Logger.base.info('🚀 [Settlement Service] Starting up...')

    tracing = TracingConfig(service_name='settlement-service')
    tracing.setup()
    tracing.instrument_sqlalchemy(engine=get_engine())
    Logger.base.info('📊 [Settlement Service] OpenTelemetry tracing configured')

    setup()
    if settings.METRICS_PORT:
        start_http_server(settings.METRICS_PORT)
        Logger.base.info(f'📈 [Settlement Service] Metrics on :{settings.METRICS_PORT}')

    KafkaTopicInitializer().ensure_topics_exist()

    consumer = SettlementConsumer()
    worker = ReconciliationWorker(use_case=container.reconcile_ledger_state_use_case())

    try:
        async with anyio.create_task_group() as tg:

            async def wait_for_signal() -> None:
                with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
                    async for signum in signals:
                        Logger.base.info(f'🛑 [Settlement Service] Received signal {signum}')
                        tg.cancel_scope.cancel()
                        return

            tg.start_soon(wait_for_signal)
            tg.start_soon(run_consumer, consumer)
            tg.start_soon(worker.run_forever)
            Logger.base.info('✅ [Settlement Service] Startup complete')
    finally:
        with anyio.CancelScope(shield=True):
            await close_producer()
        cleanup()
        tracing.shutdown()
        Logger.base.info('👋 [Settlement Service] Shutdown complete')


def run() -> None:
    anyio.run(main)


if __name__ == '__main__':
    run()
