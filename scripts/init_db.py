"""Script to initialize the database without running migrations."""

import asyncio
import sys
from pathlib import Path

from sqlalchemy import text

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.database import engine  # noqa: E402
from app.models import all_metadata  # noqa: E402


async def init_db() -> None:
    """Create every table the service uses."""
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            # Enable pgcrypto extension
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        for metadata in all_metadata:
            await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
