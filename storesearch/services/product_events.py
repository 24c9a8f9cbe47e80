"""Fire the index sync hooks when product writes commit.

Sessions made from ``storesearch.core.database.async_session_maker`` use
``IndexedSession``. Product inserts, updates and deletes are snapshotted at
flush time and handed to the hooks only after COMMIT; a rollback discards
them. Indexing therefore never runs inside the product write transaction.
"""

import logging
from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy import event
from sqlalchemy.orm import Session, UOWTransaction

from storesearch.models.product import Product
from storesearch.search.documents import product_to_document
from storesearch.services.index_sync import IndexSyncHooks, get_index_sync_hooks

logger = logging.getLogger(__name__)

# Session.info keys
CHANGES_KEY = "storesearch.product_changes"
HOOKS_KEY = "storesearch.index_sync_hooks"

ChangeKind = Literal["created", "updated", "deleted"]


@dataclass(frozen=True)
class ProductChange:
    kind: ChangeKind
    product_id: int
    snapshot: dict[str, Any] | None = None


class IndexedSession(Session):
    """ORM session whose committed Product changes reach the search index."""


def _snapshot(product: Product) -> dict[str, Any] | None:
    try:
        document = product_to_document(product)
    except Exception:
        logger.exception("Could not map product %s to a search document", product.id)
        return None
    return {**document.to_payload(), "is_active": product.is_active}


def _record(session: Session, change: ProductChange) -> None:
    changes: dict[int, ProductChange] = session.info.setdefault(CHANGES_KEY, {})
    previous = changes.get(change.product_id)
    # A product created earlier in the same transaction is still new to the index
    if previous is not None and previous.kind == "created" and change.kind == "updated":
        change = ProductChange("created", change.product_id, change.snapshot)
    changes[change.product_id] = change


@event.listens_for(IndexedSession, "after_flush")
def _collect_product_changes(session: Session, _flush_context: UOWTransaction) -> None:
    for obj in session.new:
        if isinstance(obj, Product):
            _record(session, ProductChange("created", obj.id, _snapshot(obj)))
    for obj in session.dirty:
        if isinstance(obj, Product) and session.is_modified(obj, include_collections=False):
            _record(session, ProductChange("updated", obj.id, _snapshot(obj)))
    for obj in session.deleted:
        if isinstance(obj, Product):
            _record(session, ProductChange("deleted", obj.id))


@event.listens_for(IndexedSession, "after_commit")
def _dispatch_product_changes(session: Session) -> None:
    changes: dict[int, ProductChange] = session.info.pop(CHANGES_KEY, {})
    if not changes:
        return

    hooks: IndexSyncHooks = session.info.get(HOOKS_KEY) or get_index_sync_hooks()
    for change in changes.values():
        if change.kind == "deleted":
            hooks.on_product_deleted(change.product_id)
        elif change.snapshot is None:
            continue
        elif change.kind == "created":
            if change.snapshot["is_active"]:
                hooks.on_product_created(change.snapshot)
        else:
            hooks.on_product_updated(change.snapshot)


@event.listens_for(IndexedSession, "after_rollback")
def _discard_product_changes(session: Session) -> None:
    session.info.pop(CHANGES_KEY, None)
