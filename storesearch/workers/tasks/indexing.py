"""Celery tasks that apply product changes to the search index."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from storesearch.core.database import async_session_maker
from storesearch.schemas.search import SearchableDocument
from storesearch.services.index_client import build_index_client
from storesearch.services.index_sync import IndexingService
from storesearch.workers.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)


def _run(coro: Coroutine[Any, Any, dict[str, Any]]) -> dict[str, Any]:
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(
    name="tasks.indexing.upsert_document",
    base=BaseTask,
    bind=True,
)
def upsert_document(self: BaseTask, payload: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    """Insert or replace one search document."""
    return _run(_upsert_document_async(payload))


async def _upsert_document_async(payload: dict[str, Any]) -> dict[str, Any]:
    document = SearchableDocument.model_validate(payload)
    index = build_index_client()
    try:
        await index.upsert(document)
    finally:
        await index.aclose()

    logger.info("Indexed product %s", document.id, extra={"product_id": document.id})
    return {"id": document.id, "status": "indexed"}


@celery_app.task(
    name="tasks.indexing.delete_document",
    base=BaseTask,
    bind=True,
)
def delete_document(self: BaseTask, document_id: str) -> dict[str, Any]:  # noqa: ARG001
    """Remove one search document."""
    return _run(_delete_document_async(document_id))


async def _delete_document_async(document_id: str) -> dict[str, Any]:
    index = build_index_client()
    try:
        await index.delete(document_id)
    finally:
        await index.aclose()

    logger.info("Removed product %s from index", document_id, extra={"product_id": document_id})
    return {"id": document_id, "status": "deleted"}


@celery_app.task(
    name="tasks.indexing.reindex_all",
    base=BaseTask,
    bind=True,
    max_retries=1,
)
def reindex_all(self: BaseTask) -> dict[str, Any]:  # noqa: ARG001
    """Rebuild the whole index from the products table."""
    return _run(_reindex_all_async())


async def _reindex_all_async() -> dict[str, Any]:
    index = build_index_client()
    try:
        async with async_session_maker() as session:
            report = await IndexingService(session, index).reindex_all()
    finally:
        await index.aclose()

    return {
        "status": "completed",
        "total_indexed": report.total_indexed,
        "failed": report.failed,
    }
