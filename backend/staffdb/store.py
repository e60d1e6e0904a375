"""
JSON document store for the staff service.

Layout: one file per collection, ``<data_dir>/<Collection>.json``, holding a
JSON array of documents in insertion order.

Write safety:
  • In-process ``threading.RLock`` plus an exclusive ``fcntl.flock()`` on
    ``<data_dir>/.lock`` around every write (and every ``transaction()``).
  • Collection files are written to a temp file and moved into place with
    ``os.replace`` so readers never observe a half-written file.
  • Reads go through a cache keyed on (inode, mtime_ns); a write from another
    worker process replaces the file and is picked up on the next read.

Store-maintained fields on every document: ``id`` (24 hex chars, ObjectId
shaped), ``createdAt`` and ``updatedAt`` (UTC, millisecond precision, ``Z``).
"""
import fcntl
import itertools
import json
import os
import secrets
import tempfile
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .types import Document, Filter, SortSpec

DUPLICATE_KEY_CODE = 11000

_LOCK_FILE = '.lock'

# ObjectId layout: 4-byte seconds | 5-byte per-process random | 3-byte counter
_PROCESS_RANDOM = secrets.token_hex(5)
_ID_COUNTER = itertools.count(secrets.randbelow(0xFFFFFF))
_ID_COUNTER_LOCK = threading.Lock()


# ─── errors ───────────────────────────────────────────────────────────────────

class StoreError(Exception):
    """Base class for all persistence faults."""


class StoreConnectionError(StoreError):
    """The data directory could not be opened for reading and writing."""


class StoreNotConnectedError(StoreError):
    """An operation was attempted on a handle that is not connected."""


class DuplicateKeyError(StoreError):
    """A write would violate a unique index."""

    code = DUPLICATE_KEY_CODE

    def __init__(self, collection: str, key_pattern: Dict[str, int], key_value: Dict[str, Any]):
        self.collection = collection
        self.key_pattern = key_pattern
        self.key_value = key_value
        super().__init__(
            f"E{self.code} duplicate key error collection: {collection} "
            f"index: {'_'.join(f'{k}_1' for k in key_pattern)} dup key: {key_value}"
        )


class DocumentValidationError(StoreError):
    """A document was rejected by its collection schema."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


# ─── helpers ──────────────────────────────────────────────────────────────────

def new_object_id() -> str:
    with _ID_COUNTER_LOCK:
        counter = next(_ID_COUNTER) & 0xFFFFFF
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{_PROCESS_RANDOM}{counter:06x}"


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC.

    Naive datetimes are taken to be UTC already. The fixed-width form makes
    lexicographic order equal chronological order.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"


def utc_now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def _matches(doc: Document, filters: Optional[Filter]) -> bool:
    """Return True if every filter field equals the document's value."""
    if not filters:
        return True
    return all(doc.get(k) == v for k, v in filters.items())


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Missing / null values sort before everything else
    if value is None:
        return (0, '')
    return (1, value)


class Index:
    """Compound unique index, optionally restricted to documents whose
    ``partial_string`` field holds a text value."""

    def __init__(self, fields: Iterable[str], unique: bool = True, partial_string: Optional[str] = None):
        self.fields = tuple(fields)
        self.unique = unique
        self.partial_string = partial_string

    def key(self, doc: Document) -> Optional[tuple]:
        if self.partial_string and not isinstance(doc.get(self.partial_string), str):
            return None
        return tuple(doc.get(f) for f in self.fields)

    @property
    def pattern(self) -> Dict[str, int]:
        return {f: 1 for f in self.fields}


class _Schema:
    def __init__(self, defaults: Optional[Dict[str, Any]] = None,
                 validator: Optional[Callable[[Document], None]] = None):
        self.defaults = dict(defaults or {})
        self.validator = validator


# ─── store ────────────────────────────────────────────────────────────────────

class DocumentStore:
    def __init__(self, data_dir: str):
        self.data_dir = os.path.abspath(data_dir)
        self._lock = threading.RLock()
        self._lock_file = None
        self._lock_depth = 0
        self._connected = False
        # Maps collection → ((st_ino, st_mtime_ns), docs)
        self._cache: Dict[str, tuple] = {}
        self._indexes: Dict[str, List[Index]] = {}
        self._schemas: Dict[str, _Schema] = {}

    # ── lifecycle ──────────────────────────────────────────────
    def connect(self) -> 'DocumentStore':
        """Open the data directory. Raises StoreConnectionError on failure."""
        with self._lock:
            if self._connected:
                return self
            try:
                os.makedirs(self.data_dir, exist_ok=True)
                self._lock_file = open(os.path.join(self.data_dir, _LOCK_FILE), 'a+')
                fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_EX)
                fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_UN)
            except OSError as e:
                if self._lock_file is not None:
                    self._lock_file.close()
                    self._lock_file = None
                raise StoreConnectionError(f"Cannot open data directory {self.data_dir}: {e}") from e
            self._connected = True
            return self

    def close(self) -> None:
        with self._lock:
            if self._lock_file is not None:
                self._lock_file.close()
                self._lock_file = None
            self._cache.clear()
            self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _require_connected(self) -> None:
        if not self._connected:
            raise StoreNotConnectedError("Document store is not connected")

    # ── schema / indexes ───────────────────────────────────────
    def register_schema(self, collection: str, defaults: Optional[Dict[str, Any]] = None,
                        validator: Optional[Callable[[Document], None]] = None) -> None:
        self._schemas[collection] = _Schema(defaults, validator)

    def create_index(self, collection: str, fields: Iterable[str], unique: bool = True,
                     partial_string: Optional[str] = None) -> Index:
        index = Index(fields, unique=unique, partial_string=partial_string)
        existing = self._indexes.setdefault(collection, [])
        for idx in existing:
            if idx.fields == index.fields and idx.partial_string == index.partial_string:
                return idx
        existing.append(index)
        return index

    # ── locking ────────────────────────────────────────────────
    @contextmanager
    def transaction(self):
        """Hold the write lock across several operations (re-entrant).

        Other writers, in this process or another one, wait until the block
        exits. Reads inside the block always see the latest file contents.
        """
        self._require_connected()
        with self._lock:
            if self._lock_depth == 0:
                fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_EX)
                # Another process may have written within our mtime granularity
                self._cache.clear()
            self._lock_depth += 1
            try:
                yield self
            finally:
                self._lock_depth -= 1
                if self._lock_depth == 0:
                    fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_UN)

    # ── file access ────────────────────────────────────────────
    def _path(self, collection: str) -> str:
        return os.path.join(self.data_dir, f"{collection}.json")

    def _load(self, collection: str) -> List[Document]:
        path = self._path(collection)
        try:
            st = os.stat(path)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreError(f"Cannot stat {path}: {e}") from e
        stamp = (st.st_ino, st.st_mtime_ns)

        cached = self._cache.get(collection)
        if cached is not None and cached[0] == stamp:
            return cached[1]

        try:
            with open(path, 'r', encoding='utf-8') as f:
                docs = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot read collection {collection}: {e}") from e
        if not isinstance(docs, list):
            raise StoreError(f"Collection file {path} is not a JSON array")
        self._cache[collection] = (stamp, docs)
        return docs

    def _save(self, collection: str, docs: List[Document]) -> None:
        path = self._path(collection)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f".{collection}.", suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(docs, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
            st = os.stat(path)
        except OSError as e:
            raise StoreError(f"Cannot write collection {collection}: {e}") from e
        self._cache[collection] = ((st.st_ino, st.st_mtime_ns), docs)

    # ── validation ─────────────────────────────────────────────
    def _check_unique(self, collection: str, doc: Document, docs: List[Document]) -> None:
        for index in self._indexes.get(collection, []):
            if not index.unique:
                continue
            key = index.key(doc)
            if key is None:
                continue
            for other in docs:
                if other['id'] != doc['id'] and index.key(other) == key:
                    raise DuplicateKeyError(collection, index.pattern, dict(zip(index.fields, key)))

    def _validate(self, collection: str, doc: Document) -> None:
        schema = self._schemas.get(collection)
        if schema is not None and schema.validator is not None:
            schema.validator(doc)

    # ── operations ─────────────────────────────────────────────
    def insert_one(self, collection: str, doc: Document) -> Document:
        """Insert *doc*, assigning id and timestamps. Returns the stored copy."""
        with self.transaction():
            docs = list(self._load(collection))
            schema = self._schemas.get(collection)
            now = utc_now()
            record = {'id': new_object_id()}
            if schema is not None:
                record.update(schema.defaults)
            record.update({k: v for k, v in doc.items() if k not in ('id', 'createdAt', 'updatedAt')})
            record['createdAt'] = now
            record['updatedAt'] = now
            self._validate(collection, record)
            self._check_unique(collection, record, docs)
            docs.append(record)
            self._save(collection, docs)
            return dict(record)

    def find_one(self, collection: str, filters: Optional[Filter] = None) -> Optional[Document]:
        self._require_connected()
        with self._lock:
            for doc in self._load(collection):
                if _matches(doc, filters):
                    return dict(doc)
        return None

    def find(self, collection: str, filters: Optional[Filter] = None,
             sort: Optional[SortSpec] = None, skip: int = 0,
             limit: Optional[int] = None) -> List[Document]:
        """Return copies of the matching documents, sorted and windowed."""
        self._require_connected()
        with self._lock:
            result = [dict(d) for d in self._load(collection) if _matches(d, filters)]
        # Stable multi-key sort: apply keys from least to most significant
        for field, direction in reversed(sort or []):
            result.sort(key=lambda d, f=field: _sort_key(d.get(f)), reverse=direction < 0)
        if skip:
            result = result[skip:]
        if limit is not None:
            result = result[:limit]
        return result

    def count(self, collection: str, filters: Optional[Filter] = None) -> int:
        self._require_connected()
        with self._lock:
            return sum(1 for d in self._load(collection) if _matches(d, filters))

    def update_one(self, collection: str, filters: Filter, patch: Dict[str, Any]) -> Optional[Document]:
        """Apply *patch* to the first matching document.

        Returns the document after the update, or None when nothing matched.
        ``id`` and ``createdAt`` are never overwritten; ``updatedAt`` is refreshed.
        """
        with self.transaction():
            docs = list(self._load(collection))
            for i, doc in enumerate(docs):
                if not _matches(doc, filters):
                    continue
                updated = dict(doc)
                updated.update({k: v for k, v in patch.items() if k not in ('id', 'createdAt', 'updatedAt')})
                updated['updatedAt'] = utc_now()
                self._validate(collection, updated)
                self._check_unique(collection, updated, docs)
                docs[i] = updated
                self._save(collection, docs)
                return dict(updated)
        return None
