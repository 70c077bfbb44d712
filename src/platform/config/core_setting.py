import os
from decimal import Decimal
from pathlib import Path

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_PATH = _PROJECT_ROOT / '.env'
_ENV_FILE = _ENV_PATH if _ENV_PATH.exists() else (_PROJECT_ROOT / '.env.example')


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'Ticket Settlement Engine'
    VERSION: str = '0.1.0'
    DEBUG: bool = True  # Set to False in production

    # PostgreSQL
    POSTGRES_SERVER: str = 'localhost'
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = 'postgres'
    POSTGRES_PASSWORD: SecretStr = SecretStr('postgres')
    POSTGRES_DB: str = 'ticket_settlement'
    DATABASE_URL_OVERRIDE: str = ''  # e.g. sqlite+aiosqlite:///:memory: for local runs

    # Connection pool
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_POOL_PRE_PING: bool = True

    @property
    def DATABASE_URL_ASYNC(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f'postgresql+asyncpg://{self.POSTGRES_USER}:'
            f'{self.POSTGRES_PASSWORD.get_secret_value()}@{self.POSTGRES_SERVER}:'
            f'{self.POSTGRES_PORT}/{self.POSTGRES_DB}'
        )

    # Kafka Instance Configuration
    KAFKA_PRODUCER_INSTANCE_ID: str = os.getenv(
        'KAFKA_PRODUCER_INSTANCE_ID', f'producer-{os.getpid()}'
    )
    KAFKA_CONSUMER_INSTANCE_ID: str = os.getenv(
        'KAFKA_CONSUMER_INSTANCE_ID', f'consumer-{os.getpid()}'
    )

    # Kafka Configuration
    KAFKA_BOOTSTRAP_SERVERS: str = 'localhost:9092'
    KAFKA_CONSUMER_AUTO_OFFSET_RESET: str = 'earliest'
    KAFKA_TOTAL_PARTITIONS: int = 10
    KAFKA_REPLICATION_FACTOR: int = 1  # Set to 1 for development, 3 for production

    # Ledger gateway
    LEDGER_GATEWAY_URL: str = 'http://localhost:8899'
    LEDGER_API_KEY: SecretStr = SecretStr('')
    LEDGER_REQUEST_TIMEOUT: float = 10.0  # seconds
    NFT_SYMBOL: str = 'TIX'
    NFT_METADATA_BASE_URI: str = 'https://metadata.example.com/tickets'
    NFT_SELLER_FEE_BASIS_POINTS: int = 250  # 2.5% creator royalty on resales

    # Settlement fallbacks (PlatformConfig rows take precedence)
    PLATFORM_FEE_PERCENTAGE: Decimal = Decimal('0.025')
    PLATFORM_WALLET_ADDRESS: str = 'PLATFORM_WALLET_NOT_CONFIGURED'

    # Orders
    MAX_TICKETS_PER_ORDER: int = 10
    ORDER_PAYMENT_TTL_SECONDS: int = 900

    # Ledger retry / reconciliation
    MAX_LEDGER_ATTEMPTS: int = 10
    RETRY_BASE_DELAY_SECONDS: float = 2.0
    RETRY_MAX_DELAY_SECONDS: float = 300.0
    RECONCILE_INTERVAL_SECONDS: float = 15.0
    RECONCILE_BATCH_SIZE: int = 100

    # Observability
    METRICS_PORT: int = 9464  # Prometheus scrape endpoint, 0 disables it

    @field_validator('PLATFORM_FEE_PERCENTAGE', mode='after')
    @classmethod
    def validate_fee_percentage(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 1:
            raise ValueError('PLATFORM_FEE_PERCENTAGE must be a fraction between 0 and 1')
        return v


settings = Settings()  # type: ignore
