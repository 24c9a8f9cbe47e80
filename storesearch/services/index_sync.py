"""Keep the search index in step with the products table.

``storesearch.services.product_events`` calls the sync hooks after a
product write commits. The hooks only hand the work off (an asyncio task, or a Celery task in
``celery`` mode), so a slow or failing index never affects the write.
"""

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storesearch.core.config import settings
from storesearch.models.product import Product
from storesearch.search.documents import product_to_document
from storesearch.services.index_client import IndexClient, get_index_client

logger = logging.getLogger(__name__)

REINDEX_BATCH_SIZE = 100

SyncMode = Literal["background", "celery"]


def _is_active(product: Any) -> bool:
    if isinstance(product, dict):
        return bool(product.get("is_active", True))
    return bool(getattr(product, "is_active", True))


class IndexSyncHooks:
    """Best-effort, non-blocking index updates for product mutations."""

    def __init__(self, index: IndexClient, mode: SyncMode = "background") -> None:
        self.index = index
        self.mode = mode
        self._pending: set[asyncio.Task[None]] = set()

    def on_product_created(self, product: Any) -> None:
        self._schedule_upsert(product)

    def on_product_updated(self, product: Any) -> None:
        """Re-index the product, or drop it from the index if deactivated."""
        if not _is_active(product):
            product_id = product.get("id") if isinstance(product, dict) else product.id
            self.on_product_deleted(product_id)
            return
        self._schedule_upsert(product)

    def on_product_deleted(self, product_id: int | str) -> None:
        document_id = str(product_id)
        if self.mode == "celery":
            self._enqueue("delete_document", document_id, document_id)
            return
        self._spawn(self._guarded("delete", document_id, self.index.delete(document_id)))

    async def drain(self) -> None:
        """Wait for in-flight background updates (used on shutdown and in tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _schedule_upsert(self, product: Any) -> None:
        try:
            document = product_to_document(product)
        except Exception:
            logger.exception("Could not map product to a search document")
            return

        if self.mode == "celery":
            self._enqueue("upsert_document", document.id, document.to_payload())
            return
        self._spawn(self._guarded("upsert", document.id, self.index.upsert(document)))

    async def _guarded(
        self, action: str, document_id: str, operation: Coroutine[Any, Any, None]
    ) -> None:
        try:
            await operation
        except Exception:
            logger.exception(
                "Index %s failed for product %s", action, document_id,
                extra={"product_id": document_id},
            )
        else:
            logger.debug("Index %s done for product %s", action, document_id)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; index update skipped")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _enqueue(self, task_name: str, document_id: str, argument: Any) -> None:
        from storesearch.workers.tasks import indexing

        try:
            getattr(indexing, task_name).delay(argument)
        except Exception:
            logger.exception(
                "Failed to enqueue %s for product %s", task_name, document_id,
                extra={"product_id": document_id},
            )


@dataclass
class ReindexReport:
    total_indexed: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class IndexingService:
    """Full rebuild and reset of the search index from the products table."""

    def __init__(self, db: AsyncSession, index: IndexClient) -> None:
        self.db = db
        self.index = index

    async def reindex_all(self) -> ReindexReport:
        """Clear the index, then import every active product, newest first.

        Clear-then-fill happens in place: searches running meanwhile may see
        a partially filled index. Index errors propagate to the caller.
        """
        await self.index.initialize()
        await self.index.clear()

        stmt = (
            select(Product)
            .where(Product.is_active == True)  # noqa: E712
            .order_by(Product.created_at.desc(), Product.id.desc())
        )
        products = (await self.db.execute(stmt)).scalars().all()
        documents = [product_to_document(p) for p in products]

        report = ReindexReport()
        for i in range(0, len(documents), REINDEX_BATCH_SIZE):
            batch = documents[i : i + REINDEX_BATCH_SIZE]
            for outcome in await self.index.bulk_import(batch):
                if outcome.success:
                    report.total_indexed += 1
                else:
                    report.failed += 1
                    report.errors.append(f"{outcome.id}: {outcome.error}")

        logger.info(
            "Reindexed %d products (%d failed)",
            report.total_indexed,
            report.failed,
        )
        return report

    async def clear(self) -> None:
        await self.index.clear()
        logger.info("Search index cleared")


@lru_cache
def get_index_sync_hooks() -> IndexSyncHooks:
    return IndexSyncHooks(get_index_client(), settings.index_sync_mode)
