"""
create_tables.py
----------------
One-shot script to create all database tables.
Use this for quick setup. For production migrations, use Alembic instead.

Usage:
    python create_tables.py
"""

import asyncio

from placas.core.config import settings
from placas.db.session import create_engine_from_settings, create_schema


async def create_all_tables() -> None:
    engine = create_engine_from_settings(settings)
    await create_schema(engine)
    await engine.dispose()
    print("All tables created successfully.")


if __name__ == "__main__":
    asyncio.run(create_all_tables())
