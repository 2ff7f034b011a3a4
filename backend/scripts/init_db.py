"""
Create the businesses and reviews tables and their indexes.

Usage: python scripts/init_db.py [--database-url=postgresql://...]

Safe to run repeatedly (IF NOT EXISTS everywhere).
"""
import argparse
import asyncio
import sys
from pathlib import Path

import asyncpg

# Add parent directory to path to import bizfinder modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from bizfinder.core.config import get_settings

SCHEMA = [
    "CREATE EXTENSION IF NOT EXISTS pg_trgm",
    """
    CREATE TABLE IF NOT EXISTS businesses (
        seq BIGSERIAL UNIQUE,
        id TEXT PRIMARY KEY,
        slug TEXT,
        name TEXT NOT NULL DEFAULT '',
        description TEXT,
        address TEXT,
        city TEXT,
        lat DOUBLE PRECISION,
        lng DOUBLE PRECISION,
        phone TEXT,
        whatsapp TEXT,
        email TEXT,
        facebook TEXT,
        instagram TEXT,
        website TEXT,
        tiktok TEXT,
        youtube TEXT,
        opening INTEGER,
        closing INTEGER,
        verified BOOLEAN NOT NULL DEFAULT FALSE,
        featured BOOLEAN NOT NULL DEFAULT FALSE,
        status TEXT NOT NULL DEFAULT 'Active',
        is_new_arrival BOOLEAN NOT NULL DEFAULT FALSE,
        is_not_available BOOLEAN NOT NULL DEFAULT FALSE,
        tags TEXT[] NOT NULL DEFAULT '{}',
        brand TEXT,
        price DOUBLE PRECISION,
        sale_price DOUBLE PRECISION,
        discount DOUBLE PRECISION,
        net_price DOUBLE PRECISION,
        views INTEGER NOT NULL DEFAULT 0,
        like_count INTEGER NOT NULL DEFAULT 0,
        rating_count INTEGER NOT NULL DEFAULT 0,
        rating_avg DOUBLE PRECISION NOT NULL DEFAULT 0,
        featured_image TEXT,
        images TEXT[] NOT NULL DEFAULT '{}',
        created_at TIMESTAMPTZ,
        updated_at TIMESTAMPTZ
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reviews (
        id BIGSERIAL PRIMARY KEY,
        item_id TEXT NOT NULL,
        reviewer_name TEXT NOT NULL,
        reviewer_email TEXT NOT NULL,
        rating SMALLINT NOT NULL CHECK (rating BETWEEN 1 AND 5),
        review_text TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
]

INDEXES = [
    # Text search: name, description and tags (trigram, for ILIKE '%term%')
    ("idx_businesses_name_trgm", "CREATE INDEX IF NOT EXISTS idx_businesses_name_trgm ON businesses USING gin (name gin_trgm_ops)"),
    ("idx_businesses_description_trgm", "CREATE INDEX IF NOT EXISTS idx_businesses_description_trgm ON businesses USING gin (description gin_trgm_ops)"),
    ("idx_businesses_address_trgm", "CREATE INDEX IF NOT EXISTS idx_businesses_address_trgm ON businesses USING gin (address gin_trgm_ops)"),
    ("idx_businesses_tags", "CREATE INDEX IF NOT EXISTS idx_businesses_tags ON businesses USING gin (tags)"),
    # Frequent filters
    ("idx_businesses_status_verified", "CREATE INDEX IF NOT EXISTS idx_businesses_status_verified ON businesses (status, verified)"),
    ("idx_businesses_slug", "CREATE UNIQUE INDEX IF NOT EXISTS idx_businesses_slug ON businesses (slug)"),
    ("idx_businesses_views", "CREATE INDEX IF NOT EXISTS idx_businesses_views ON businesses (views DESC)"),
    # Reviews
    ("idx_reviews_item_date", "CREATE INDEX IF NOT EXISTS idx_reviews_item_date ON reviews (item_id, created_at DESC)"),
    ("idx_reviews_item_email", "CREATE UNIQUE INDEX IF NOT EXISTS idx_reviews_item_email ON reviews (item_id, reviewer_email)"),
    ("idx_reviews_rating", "CREATE INDEX IF NOT EXISTS idx_reviews_rating ON reviews (rating)"),
]


async def init_db(database_url: str) -> bool:
    print("=" * 60)
    print("Initializing database")
    print("=" * 60)

    try:
        conn = await asyncpg.connect(database_url)
    except (OSError, asyncpg.PostgresError) as e:
        print(f"[X] Could not connect: {e}")
        return False

    try:
        for statement in SCHEMA:
            await conn.execute(statement)
        print("[OK] Tables ready (businesses, reviews)")

        failed = 0
        for name, statement in INDEXES:
            try:
                await conn.execute(statement)
                print(f"[OK] {name}")
            except asyncpg.PostgresError as e:
                failed += 1
                print(f"[X] {name}: {e}")
    finally:
        await conn.close()

    print()
    print(f"Done: {len(INDEXES) - failed}/{len(INDEXES)} indexes created")
    return failed == 0


def main():
    parser = argparse.ArgumentParser(description="Create tables and indexes")
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL")
    args = parser.parse_args()

    database_url = args.database_url or get_settings().database_url
    ok = asyncio.run(init_db(database_url))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
