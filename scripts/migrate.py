"""Script to run database migrations."""

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

PROJECT_ROOT = Path(__file__).parent.parent


def _config() -> Config:
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return alembic_cfg


def run_migrations(revision: str = "head") -> None:
    """Upgrade the database schema to ``revision``."""
    try:
        print(f"Running database migrations up to {revision}...")
        command.upgrade(_config(), revision)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def rollback(revision: str = "-1") -> None:
    """Downgrade the database schema to ``revision``."""
    try:
        print(f"Rolling back to {revision}...")
        command.downgrade(_config(), revision)
        print("✓ Rollback completed successfully!")
    except Exception as e:
        print(f"✗ Rollback failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) == 1:
        run_migrations()
    elif sys.argv[1] == "upgrade":
        run_migrations(sys.argv[2] if len(sys.argv) > 2 else "head")
    elif sys.argv[1] == "downgrade":
        rollback(sys.argv[2] if len(sys.argv) > 2 else "-1")
    else:
        print("Usage: python scripts/migrate.py [upgrade <rev> | downgrade <rev>]")
        sys.exit(2)
