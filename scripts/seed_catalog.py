"""Seed script for local search development.

Creates the tables if needed, inserts a few sample products, rebuilds the
search index from them and runs two sample searches.

With the default ``memory`` backend the index lives only as long as this
process; set ``SEARCH_BACKEND=typesense`` to fill a running Typesense node.

Usage:
    uv run python -m scripts.seed_catalog
"""

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storesearch.core.database import async_session_maker, engine
from storesearch.models.base import Base
from storesearch.models.product import Product
from storesearch.services.index_client import IndexClient, get_index_client
from storesearch.services.index_sync import IndexingService, get_index_sync_hooks

NOW = datetime.now(UTC)

SAMPLE_PRODUCTS = [
    {
        "name": "Cyberpunk 2077",
        "slug": "cyberpunk-2077",
        "platform": "Steam",
        "price": Decimal("59.99"),
        "final_price": Decimal("49.99"),
        "genres": ["RPG", "Action"],
        "images_cover_url": "/images/cyberpunk.jpg",
        "description": "Open-world action-adventure RPG",
        "type": "Base Game",
        "created_at": NOW - timedelta(days=2),
    },
    {
        "name": "Grand Theft Auto V",
        "slug": "gta-v",
        "platform": "Steam",
        "price": Decimal("29.99"),
        "final_price": Decimal("24.99"),
        "genres": ["Action", "Adventure"],
        "images_cover_url": "/images/gta5.jpg",
        "description": "Action-adventure game set in Los Santos",
        "type": "Base Game",
        "created_at": NOW - timedelta(days=1),
    },
    {
        "name": "Call of Duty: Modern Warfare",
        "slug": "cod-mw",
        "platform": "Battle.net",
        "price": Decimal("39.99"),
        "final_price": Decimal("34.99"),
        "genres": ["FPS", "Action"],
        "images_cover_url": "/images/cod.jpg",
        "description": "First-person shooter game",
        "type": "Base Game",
        "created_at": NOW,
    },
]


async def seed(session: AsyncSession) -> int:
    """Insert sample products that are not there yet. Returns how many were added."""
    existing = set((await session.execute(select(Product.slug))).scalars().all())
    added = 0
    for data in SAMPLE_PRODUCTS:
        if data["slug"] in existing:
            continue
        session.add(Product(**data))
        added += 1
    await session.commit()
    return added


async def try_searches(index: IndexClient) -> None:
    for query in ("Cyberpunk", "game"):
        result = await index.search(query, per_page=5)
        print(f"  {result.total} results for {query!r}")
        for hit in result.hits:
            print(f"    [{hit.score:>4}] {hit.document.name}")


async def main() -> None:
    """Run the seed script."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    index = get_index_client()
    try:
        async with async_session_maker() as session:
            added = await seed(session)
            # Let the commit-time index updates settle before the full rebuild
            await get_index_sync_hooks().drain()
            report = await IndexingService(session, index).reindex_all()

        stats = await index.stats()

        print("=" * 60)
        print("  Catalog seed complete")
        print("=" * 60)
        print(f"  Products added:     {added}")
        print(f"  Documents indexed:  {report.total_indexed} ({report.failed} failed)")
        print(f"  Index {stats.name!r} holds {stats.total_documents} documents")
        print()
        await try_searches(index)
        print("=" * 60)
    finally:
        await index.aclose()


if __name__ == "__main__":
    asyncio.run(main())
