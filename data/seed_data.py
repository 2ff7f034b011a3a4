"""
Seed script to populate the database with sample businesses for development.
Run backend/scripts/init_db.py first so the tables exist.
"""
import asyncio
import sys
from pathlib import Path

import asyncpg

# Add backend directory to path to import bizfinder modules
backend_path = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(backend_path))

from bizfinder.core.config import get_settings
from bizfinder.services.store.postgres import COLUMNS, TABLE
from bizfinder.services.store.samples import sample_businesses


def build_insert() -> str:
    placeholders = ", ".join(f"${i}" for i in range(1, len(COLUMNS) + 1))
    return (
        f"INSERT INTO {TABLE} ({', '.join(COLUMNS)}) VALUES ({placeholders}) "
        "ON CONFLICT (id) DO NOTHING"
    )


async def seed_businesses(conn) -> int:
    """Insert the sample businesses; existing ids are left untouched."""
    sql = build_insert()
    inserted = 0
    for record in sample_businesses():
        data = record.model_dump()
        status = await conn.execute(sql, *(data[column] for column in COLUMNS))
        # asyncpg returns "INSERT 0 <rows>"
        if status.endswith(" 1"):
            inserted += 1
            print(f"[OK] {record.id} {record.name}")
        else:
            print(f"[SKIP] {record.id} already present")
    return inserted


async def run(database_url: str) -> int:
    try:
        conn = await asyncpg.connect(database_url)
    except (OSError, asyncpg.PostgresError) as e:
        print(f"[ERROR] Failed to connect to PostgreSQL: {e}")
        sys.exit(1)

    try:
        try:
            await conn.fetchval(f"SELECT 1 FROM {TABLE} LIMIT 1")
        except asyncpg.UndefinedTableError as e:
            print("[ERROR] Tables may not exist. Run backend/scripts/init_db.py first.")
            print(f"  Error: {e}")
            sys.exit(1)
        return await seed_businesses(conn)
    finally:
        await conn.close()


def main():
    """Main function to seed the database."""
    print("Starting database seeding...")
    print("-" * 50)

    inserted = asyncio.run(run(get_settings().database_url))

    print("\n" + "-" * 50)
    print("[OK] Database seeding completed successfully!")
    print(f"  - Businesses inserted: {inserted}")


if __name__ == "__main__":
    main()
