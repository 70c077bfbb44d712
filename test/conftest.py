"""
Test Configuration

Environment setup MUST happen before any application import: settings,
the log sink and the metrics registry are all created at import time.

Layout:
- Unit tests (test/**/unit/, test/platform/): mocks only, no database
- Integration tests (test/**/integration/): real SQLAlchemy unit of work on a
  throw-away sqlite database per test (see test/service/settlement/conftest.py)
"""

import os
from pathlib import Path


def _early_setup_test_environment() -> None:
    """Set test environment variables before any module imports."""
    test_log_dir = Path(__file__).parent / 'test_log'
    test_log_dir.mkdir(exist_ok=True)
    os.environ['TEST_LOG_DIR'] = str(test_log_dir)

    # Integration fixtures pass their own per-test URL; this keeps anything
    # that falls back to the global engine off a real Postgres
    os.environ['DATABASE_URL_OVERRIDE'] = 'sqlite+aiosqlite:///:memory:'
    os.environ['PLATFORM_WALLET_ADDRESS'] = 'PlatformWa11et1111111111111111111111111111'
    os.environ['PLATFORM_FEE_PERCENTAGE'] = '0.025'
    os.environ['METRICS_PORT'] = '0'
    os.environ.setdefault('DEPLOY_ENV', 'test')


# Call immediately to set env vars before any imports
_early_setup_test_environment()

import pytest  # noqa: E402


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Tag tests by directory so `-m unit` / `-m integration` work without explicit markers"""
    for item in items:
        path = str(item.fspath)
        if '/integration/' in path and 'integration' not in item.keywords:
            item.add_marker(pytest.mark.integration)
        elif 'integration' not in item.keywords and 'unit' not in item.keywords:
            item.add_marker(pytest.mark.unit)
