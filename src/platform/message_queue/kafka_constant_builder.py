class ServiceNames:
    """Service name constants"""

    MARKETPLACE_API = 'marketplace-api'  # Buyer/seller facing API, produces commands
    LEDGER_GATEWAY = 'ledger-gateway'  # Chain indexer, produces finality callbacks
    SETTLEMENT_SERVICE = 'settlement-service'  # Orders, minting, listings, reconciliation


class KafkaTopicBuilder:
    """
    Kafka Topic Naming Unified Builder

    Format: settlement______{action}______{from_service}___to___{to_service}
    """

    @staticmethod
    def _command(*, action: str, from_service: str) -> str:
        return f'settlement______{action}______{from_service}___to___{ServiceNames.SETTLEMENT_SERVICE}'

    # ====== Orders =======
    @staticmethod
    def submit_order() -> str:
        return KafkaTopicBuilder._command(
            action='submit-order', from_service=ServiceNames.MARKETPLACE_API
        )

    @staticmethod
    def confirm_payment() -> str:
        return KafkaTopicBuilder._command(
            action='confirm-payment', from_service=ServiceNames.MARKETPLACE_API
        )

    @staticmethod
    def cancel_order() -> str:
        return KafkaTopicBuilder._command(
            action='cancel-order', from_service=ServiceNames.MARKETPLACE_API
        )

    @staticmethod
    def order_paid() -> str:
        """Mint request, produced by the settlement service for itself after payment"""
        return KafkaTopicBuilder._command(
            action='order-paid', from_service=ServiceNames.SETTLEMENT_SERVICE
        )

    # ====== Listings =======
    @staticmethod
    def create_listing() -> str:
        return KafkaTopicBuilder._command(
            action='create-listing', from_service=ServiceNames.MARKETPLACE_API
        )

    @staticmethod
    def cancel_listing() -> str:
        return KafkaTopicBuilder._command(
            action='cancel-listing', from_service=ServiceNames.MARKETPLACE_API
        )

    @staticmethod
    def fulfill_listing() -> str:
        return KafkaTopicBuilder._command(
            action='fulfill-listing', from_service=ServiceNames.MARKETPLACE_API
        )

    # ====== Ledger callbacks =======
    @staticmethod
    def ledger_transaction_finalized() -> str:
        return KafkaTopicBuilder._command(
            action='ledger-transaction-finalized', from_service=ServiceNames.LEDGER_GATEWAY
        )

    # ====== Dead Letter Queue =======
    @staticmethod
    def settlement_dlq() -> str:
        """Dead Letter Queue for messages the settlement service could not process"""
        return f'settlement______settlement-dlq______{ServiceNames.SETTLEMENT_SERVICE}'

    @staticmethod
    def get_all_topics() -> list[str]:
        return [
            KafkaTopicBuilder.submit_order(),
            KafkaTopicBuilder.confirm_payment(),
            KafkaTopicBuilder.cancel_order(),
            KafkaTopicBuilder.order_paid(),
            KafkaTopicBuilder.create_listing(),
            KafkaTopicBuilder.cancel_listing(),
            KafkaTopicBuilder.fulfill_listing(),
            KafkaTopicBuilder.ledger_transaction_finalized(),
            KafkaTopicBuilder.settlement_dlq(),
        ]


class KafkaConsumerGroupBuilder:
    """
    Kafka Consumer Group Naming Unified Builder

    Format: settlement_____{service_name}
    """

    @staticmethod
    def settlement_service() -> str:
        return f'settlement_____{ServiceNames.SETTLEMENT_SERVICE}'
