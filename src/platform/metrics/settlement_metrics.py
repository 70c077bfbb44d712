from prometheus_client import Counter, Histogram


class SettlementMetrics:
    """
    Settlement Engine Core Metrics Collector

    Order/listing state transitions, ledger latency, reconciliation sweeps and
    Kafka consumer throughput.
    """

    def __init__(self) -> None:
        # ========== Kafka Consumer Metrics ==========
        self.kafka_messages_processed = Counter(
            'settlement_kafka_messages_processed_total',
            'Total processed messages',
            ['service', 'topic', 'result'],  # result: ok/rejected/dlq
        )

        self.kafka_processing_duration = Histogram(
            'settlement_kafka_processing_duration_seconds',
            'Message processing duration',
            ['service', 'topic'],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
        )

        # ========== Business Metrics ==========
        self.order_transitions = Counter(
            'settlement_order_transitions_total',
            'Order status transitions',
            ['status'],
        )

        self.ticket_mints = Counter(
            'settlement_ticket_mints_total',
            'Ticket mint attempts by outcome',
            ['result'],  # submitted/skipped/transient_error/final_error
        )

        self.listing_transitions = Counter(
            'settlement_listing_transitions_total',
            'Listing status transitions',
            ['status'],
        )

        self.settlements = Counter(
            'settlement_payment_distributions_total',
            'Payment distributions by outcome',
            ['kind', 'result'],  # kind: primary/resale, result: created/existing
        )

        # ========== Ledger Metrics ==========
        self.ledger_call_duration = Histogram(
            'settlement_ledger_call_duration_seconds',
            'Ledger gateway call latency',
            ['operation', 'result'],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
        )

        # ========== Reconciliation Metrics ==========
        self.reconciliation_runs = Counter(
            'settlement_reconciliation_runs_total',
            'Reconciliation sweeps',
            ['result'],
        )

        self.reconciliation_corrections = Counter(
            'settlement_reconciliation_corrections_total',
            'Entities corrected by reconciliation',
            ['action'],
        )

    # ========== Helper Methods ==========

    def record_kafka_message(self, *, service: str, topic: str, result: str, duration: float):
        self.kafka_messages_processed.labels(service=service, topic=topic, result=result).inc()
        self.kafka_processing_duration.labels(service=service, topic=topic).observe(duration)

    def record_order_transition(self, *, status: str):
        self.order_transitions.labels(status=status).inc()

    def record_ticket_mint(self, *, result: str):
        self.ticket_mints.labels(result=result).inc()

    def record_listing_transition(self, *, status: str):
        self.listing_transitions.labels(status=status).inc()

    def record_settlement(self, *, kind: str, result: str):
        self.settlements.labels(kind=kind, result=result).inc()

    def record_ledger_call(self, *, operation: str, result: str, duration: float):
        self.ledger_call_duration.labels(operation=operation, result=result).observe(duration)

    def record_reconciliation(self, *, result: str, corrections: dict[str, int]):
        self.reconciliation_runs.labels(result=result).inc()
        for action, count in corrections.items():
            if count:
                self.reconciliation_corrections.labels(action=action).inc(count)


# Global metrics instance
metrics = SettlementMetrics()
