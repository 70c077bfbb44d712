"""Alembic command shortcuts (registered as console scripts in pyproject.toml)."""

from pathlib import Path
import subprocess
import sys


ALEMBIC_INI = Path(__file__).parent / 'alembic.ini'


def run_alembic(args: list[str]) -> int:
    return subprocess.call(['alembic', '-c', str(ALEMBIC_INI), *args])


def upgrade() -> int:
    return run_alembic(['upgrade', 'head'])


def downgrade() -> int:
    return run_alembic(['downgrade', '-1'])


def make_migration() -> int:
    if len(sys.argv) < 2:
        sys.stderr.write("Usage: make-migration 'migration message'\n")
        return 1
    return run_alembic(['revision', '--autogenerate', '-m', ' '.join(sys.argv[1:])])


def history() -> int:
    return run_alembic(['history'])
