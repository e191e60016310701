"""
Document store.

Collection/document persistence for items and ratings. `DocumentStore` keeps
everything in memory; `JsonDocumentStore` persists one JSON file per
collection. Both support ordered cursor pages and standing watches.
"""

import copy
import json
import os
import shutil
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from rideout.errors import NotFoundError, StoreUnavailableError, ValidationError

logger = logging.getLogger(__name__)

ID_FIELD = "id"

Where = Sequence[Tuple[str, str, Any]]

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    ">=": lambda a, b: a >= b,
    ">": lambda a, b: a > b,
    "<=": lambda a, b: a <= b,
    "<": lambda a, b: a < b,
}


@dataclass(frozen=True)
class SortField:
    """One component of a sort order."""
    field: str
    descending: bool = True


@dataclass
class QuerySpec:
    """A bounded, ordered, optionally filtered query used by watches."""
    sort: List[SortField]
    limit: int
    where: List[Tuple[str, str, Any]] = field(default_factory=list)


@dataclass
class _Watch:
    collection: str
    query: QuerySpec
    on_change: Callable[[List[dict]], None]
    on_error: Optional[Callable[[Exception], None]]
    window_ids: List[str] = field(default_factory=list)


def _sort_value(value: Any) -> Tuple:
    # Missing values sort below any present value
    if value is None:
        return (0,)
    return (1, value)


def _is_after(record: dict, sort_spec: Sequence[SortField], cursor: Sequence) -> bool:
    """True if record sorts strictly after the cursor key."""
    for sort_field, cursor_value in zip(sort_spec, cursor):
        value = _sort_value(record.get(sort_field.field))
        bound = _sort_value(cursor_value)
        if value == bound:
            continue
        if sort_field.descending:
            return value < bound
        return value > bound
    return False


class DocumentStore:
    """
    In-memory document store.

    Every record carries its id under the `id` field. Records handed out are
    deep copies, so callers never alias stored state.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, dict]] = {}
        self._watches: Dict[int, _Watch] = {}
        self._next_watch_id = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, collection: str, doc_id: str) -> Optional[dict]:
        """Return a copy of the document, or None if it doesn't exist."""
        record = self._collection(collection).get(doc_id)
        return copy.deepcopy(record) if record is not None else None

    def query_by_equality(self, collection: str, field_name: str, value: Any) -> List[dict]:
        """Return every document whose `field_name` equals `value`."""
        return [
            copy.deepcopy(record)
            for record in self._collection(collection).values()
            if record.get(field_name) == value
        ]

    def ordered_page(
        self,
        collection: str,
        sort_spec: Sequence[SortField],
        page_size: int,
        cursor: Optional[Sequence] = None,
        where: Optional[Where] = None
    ) -> List[dict]:
        """
        Return one page of documents in sort order.

        Args:
            collection: Collection name
            sort_spec: Sort fields, most significant first
            page_size: Maximum number of documents to return
            cursor: Sort key values of the last document already seen; the
                page starts strictly after it
            where: Optional (field, op, value) filters, all of which must hold

        Returns:
            List of document copies
        """
        if page_size <= 0:
            raise ValidationError(f"Invalid page size: {page_size}. Must be positive")
        if cursor is not None and len(cursor) != len(sort_spec):
            raise ValidationError(
                f"Cursor has {len(cursor)} key values, sort has {len(sort_spec)} fields"
            )

        records = [
            record for record in self._collection(collection).values()
            if self._matches(record, where)
        ]

        # Stable sorts applied least significant first
        for sort_field in reversed(list(sort_spec)):
            records.sort(
                key=lambda r, f=sort_field.field: _sort_value(r.get(f)),
                reverse=sort_field.descending
            )

        if cursor is not None:
            try:
                records = [r for r in records if _is_after(r, sort_spec, cursor)]
            except TypeError as e:
                raise ValidationError(
                    f"Cursor key values do not match sort fields: {list(cursor)!r}"
                ) from e

        return [copy.deepcopy(r) for r in records[:page_size]]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, collection: str, record: dict, doc_id: Optional[str] = None) -> str:
        """
        Insert a new document.

        Args:
            collection: Collection name
            record: Document fields
            doc_id: Explicit id; a uuid4 is generated when omitted

        Returns:
            The document id

        Raises:
            ValidationError: If a document with doc_id already exists
        """
        doc_id = doc_id or str(uuid.uuid4())
        docs = self._collection(collection)
        if doc_id in docs:
            raise ValidationError(f"Document {doc_id} already exists in {collection}")

        stored = copy.deepcopy(record)
        stored[ID_FIELD] = doc_id

        def mutate():
            docs[doc_id] = stored

        self._commit(collection, doc_id, mutate)
        return doc_id

    def update_fields(self, collection: str, doc_id: str, partial: dict) -> None:
        """
        Overwrite the given top-level fields of an existing document.
        Nested values are replaced wholesale, not merged.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        docs = self._collection(collection)
        if doc_id not in docs:
            raise NotFoundError(f"Document not found: {collection}/{doc_id}")

        changes = {k: copy.deepcopy(v) for k, v in partial.items() if k != ID_FIELD}

        def mutate():
            docs[doc_id].update(changes)

        self._commit(collection, doc_id, mutate)

    def increment(self, collection: str, doc_id: str, field_name: str, amount: int = 1) -> int:
        """
        Add `amount` to a numeric field (missing field counts as 0).

        Returns:
            The new value

        Raises:
            NotFoundError: If the document doesn't exist
        """
        docs = self._collection(collection)
        if doc_id not in docs:
            raise NotFoundError(f"Document not found: {collection}/{doc_id}")

        new_value = (docs[doc_id].get(field_name) or 0) + amount

        def mutate():
            docs[doc_id][field_name] = new_value

        self._commit(collection, doc_id, mutate)
        return new_value

    def delete_by_id(self, collection: str, doc_id: str) -> bool:
        """
        Delete a document. Deleting a missing document is a no-op.

        Returns:
            True if a document was removed
        """
        docs = self._collection(collection)
        if doc_id not in docs:
            logger.debug(f"Delete of missing document {collection}/{doc_id} ignored")
            return False

        def mutate():
            del docs[doc_id]

        self._commit(collection, doc_id, mutate)
        return True

    # ------------------------------------------------------------------
    # Watches
    # ------------------------------------------------------------------

    def watch(
        self,
        collection: str,
        query: QuerySpec,
        on_change: Callable[[List[dict]], None],
        on_error: Optional[Callable[[Exception], None]] = None
    ) -> Callable[[], None]:
        """
        Register a standing query.

        `on_change` is called immediately with the current window and again
        whenever a write touches a document that was in, or now falls in, the
        window. Store failures are routed to `on_error` and the watch stays
        registered.

        Returns:
            Zero-argument function that cancels the watch
        """
        watch_id = self._next_watch_id
        self._next_watch_id += 1
        watch = _Watch(collection, query, on_change, on_error)
        self._watches[watch_id] = watch

        def unsubscribe() -> None:
            if self._watches.pop(watch_id, None) is not None:
                logger.debug(f"Watch {watch_id} on {collection} cancelled")

        self._refresh(watch_id, watch, changed_id=None)
        return unsubscribe

    def _refresh(self, watch_id: int, watch: _Watch, changed_id: Optional[str]) -> None:
        try:
            records = self.ordered_page(
                watch.collection,
                watch.query.sort,
                watch.query.limit,
                where=watch.query.where
            )
        except StoreUnavailableError as e:
            logger.error(f"Watch {watch_id} on {watch.collection} failed: {e}")
            if watch.on_error is not None:
                watch.on_error(e)
            return

        new_ids = [r[ID_FIELD] for r in records]
        touched = (
            changed_id is None
            or changed_id in watch.window_ids
            or changed_id in new_ids
        )
        watch.window_ids = new_ids
        if touched:
            watch.on_change(records)

    def _notify(self, collection: str, doc_id: str) -> None:
        for watch_id, watch in list(self._watches.items()):
            # A callback may have cancelled this watch
            if watch_id not in self._watches or watch.collection != collection:
                continue
            try:
                self._refresh(watch_id, watch, changed_id=doc_id)
            except Exception:
                # The write is already committed; keep notifying the rest
                logger.exception(f"Watch {watch_id} on {collection} callback failed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _collection(self, name: str) -> Dict[str, dict]:
        return self._collections.setdefault(name, {})

    def _commit(self, collection: str, doc_id: str, mutate: Callable[[], None]) -> None:
        """Apply a mutation, persist it (rolling back on failure), then notify watches."""
        docs = self._collection(collection)
        existed = doc_id in docs
        before = copy.deepcopy(docs.get(doc_id))

        mutate()
        try:
            self._persist(collection)
        except StoreUnavailableError:
            if existed:
                docs[doc_id] = before
            else:
                docs.pop(doc_id, None)
            raise

        self._notify(collection, doc_id)

    def _persist(self, collection: str) -> None:
        """Hook for durable stores. In-memory store has nothing to do."""

    @staticmethod
    def _matches(record: dict, where: Optional[Where]) -> bool:
        for field_name, op, value in where or ():
            if op not in _OPERATORS:
                raise ValidationError(f"Unsupported operator: {op}")
            actual = record.get(field_name)
            if actual is None and op != "==":
                return False
            if not _OPERATORS[op](actual, value):
                return False
        return True


class JsonDocumentStore(DocumentStore):
    """
    Document store persisted as one JSON file per collection.

    Layout: <data_root>/<collection>.json, with <collection>.json.backup
    holding the previous version.
    """

    def __init__(self, data_root: str):
        """
        Initialize JSON store.

        Args:
            data_root: Directory holding the collection files
        """
        super().__init__()
        self.data_root = str(data_root)

        try:
            os.makedirs(self.data_root, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot create data root {self.data_root}: {e}") from e

        logger.info(f"Initialized JsonDocumentStore with data_root={self.data_root}")

    def _path(self, collection: str) -> str:
        return os.path.join(self.data_root, f"{collection}.json")

    def _collection(self, name: str) -> Dict[str, dict]:
        if name not in self._collections:
            self._collections[name] = self._load(name)
        return self._collections[name]

    def _load(self, collection: str) -> Dict[str, dict]:
        """Load a collection from disk, falling back to its backup if corrupt."""
        path = self._path(collection)
        if not os.path.exists(path):
            logger.debug(f"No file for collection {collection}, starting empty")
            return {}

        try:
            docs = self._read_file(path)
            logger.info(f"Loaded {len(docs)} documents from {path}")
            return docs
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse {path}: {e}")
            return self._restore_from_backup(collection)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot read {path}: {e}") from e

    @staticmethod
    def _read_file(path: str) -> Dict[str, dict]:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        documents = data.get("documents", []) if isinstance(data, dict) else data
        return {doc[ID_FIELD]: doc for doc in documents}

    def _restore_from_backup(self, collection: str) -> Dict[str, dict]:
        """Attempt to restore a collection whose main file is corrupted."""
        path = self._path(collection)
        backup_path = f"{path}.backup"
        if not os.path.exists(backup_path):
            logger.warning(f"No backup for {collection}. Starting with empty collection.")
            return {}

        logger.warning(f"Attempting to restore {collection} from backup: {backup_path}")
        try:
            docs = self._read_file(backup_path)
            shutil.copy(backup_path, path)
            logger.info(f"Restored {len(docs)} documents for {collection} from backup")
            return docs
        except (OSError, ValueError) as e:
            logger.error(f"Backup restoration failed: {e}. Starting with empty collection.")
            return {}

    def _persist(self, collection: str) -> None:
        """Write the collection with the temp-file + rename pattern."""
        path = self._path(collection)
        temp_path = f"{path}.tmp"
        data = {
            "collection": collection,
            "documents": list(self._collections.get(collection, {}).values())
        }

        try:
            if os.path.exists(path):
                shutil.copy(path, f"{path}.backup")
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, path)
            logger.debug(f"Saved {len(data['documents'])} documents to {path}")
        except OSError as e:
            logger.error(f"Failed to save collection {collection}: {e}")
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise StoreUnavailableError(f"Cannot write {path}: {e}") from e
