"""
Ledger Storage

Partners, transactions and exchange rates are kept as JSON documents keyed by
id, one table per record kind. Two backends share the same interface: an
in-memory one used by tests and throwaway systems, and a SQLite one for the
on-disk ledger. Amounts always travel as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Any, Iterable, Set, Union, get_type_hints
from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
import sqlite3
import json
import threading
from dataclasses import dataclass, fields
from pathlib import Path
from contextlib import contextmanager

from .logging_config import get_logger


logger = get_logger("fx_ledger.storage")

Document = Dict[str, Any]

REVIVERS: Dict[type, Callable[[Any], Any]] = {
    datetime: datetime.fromisoformat,
    Decimal: Decimal,
}


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _revive(kind: Any, value: Any) -> Any:
    if value is None or not isinstance(kind, type) or isinstance(value, kind):
        return value
    if issubclass(kind, Enum):
        return kind(value)
    reviver = REVIVERS.get(kind)
    return reviver(value) if reviver else value


@dataclass
class StorageRecord:
    """Common fields of every ledger record"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Document:
        """Flatten the record into a JSON-safe document"""
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Document) -> 'StorageRecord':
        """
        Build a record from a stored document.

        Values are revived from their string form according to the declared
        field type (datetime, Decimal, Enum). Keys without a matching field
        are ignored, and missing keys take the field default.
        """
        hints = get_type_hints(cls)
        values = {
            f.name: _revive(hints.get(f.name), data[f.name])
            for f in fields(cls) if f.name in data
        }
        return cls(**values)


def _detach(document: Any) -> Any:
    # Callers must never share mutable state with the store
    return json.loads(json.dumps(document, default=str))


def _matching(documents: Iterable[Document], filters: Dict[str, Any]) -> List[Document]:
    return [
        doc for doc in documents
        if all(key in doc and doc[key] == wanted for key, wanted in filters.items())
    ]


class StorageInterface(ABC):
    """Contract shared by the ledger storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Document) -> None:
        """Insert or overwrite one document"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Document]:
        """Fetch one document, None when absent"""

    @abstractmethod
    def load_all(self, table: str) -> List[Document]:
        """Fetch every document of a table in insertion order"""

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Remove one document, reporting whether it existed"""

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        """Documents whose fields equal every value in filters"""

    @abstractmethod
    def count(self, table: str) -> int:
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    @contextmanager
    def atomic(self):
        """
        Group writes so they land together or not at all.

        Blocks may nest; a failure anywhere rolls back the outermost block.
        """
        self.begin_transaction()
        try:
            yield
        except Exception:
            self.rollback()
            raise
        self.commit()


class InMemoryStorage(StorageInterface):
    """
    Dictionary-backed storage.

    The outermost atomic block keeps a copy of every table and puts it
    back on rollback.
    """

    def __init__(self):
        self._tables: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._saved_state: Optional[Dict[str, Dict[str, Document]]] = None

    def _table(self, table: str) -> Dict[str, Document]:
        return self._tables.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Document) -> None:
        with self._lock:
            self._table(table)[record_id] = _detach(data)

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            document = self._table(table).get(record_id)
            return _detach(document) if document is not None else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            return _detach(list(self._table(table).values()))

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        with self._lock:
            return _detach(_matching(self._table(table).values(), filters))

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._tables[table] = {}

    def begin_transaction(self) -> None:
        self._lock.acquire()
        if self._depth == 0:
            self._saved_state = _detach(self._tables)
        self._depth += 1

    def commit(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0:
            self._saved_state = None
        self._lock.release()

    def rollback(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._saved_state is not None:
            self._tables = _detach(self._saved_state)
        if self._depth == 0:
            self._saved_state = None
        self._lock.release()

    def close(self) -> None:
        pass


class SQLiteStorage(StorageInterface):
    """
    SQLite-backed storage for the on-disk ledger.

    Every table has the same shape: the document id, the JSON body and two
    bookkeeping timestamps. Row ids are kept stable on update so load_all
    returns documents in the order they were first written.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._known_tables: Set[str] = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _flush(self) -> None:
        # Inside an atomic block the outermost commit writes everything
        if self._depth == 0:
            self._connection.commit()

    def _prepare(self, table: str) -> None:
        if table in self._known_tables:
            return
        self._connection.execute(
            f"CREATE TABLE IF NOT EXISTS {table} ("
            " id TEXT PRIMARY KEY,"
            " body TEXT NOT NULL,"
            " inserted_at TEXT NOT NULL,"
            " modified_at TEXT NOT NULL)"
        )
        self._flush()
        self._known_tables.add(table)

    def _documents(self, table: str, where: str = "", params: tuple = ()) -> List[Document]:
        self._prepare(table)
        rows = self._connection.execute(
            f"SELECT body FROM {table} {where} ORDER BY rowid", params
        ).fetchall()
        return [json.loads(row["body"]) for row in rows]

    def save(self, table: str, record_id: str, data: Document) -> None:
        with self._lock:
            self._prepare(table)
            stamp = datetime.now(timezone.utc).isoformat()
            self._connection.execute(
                f"INSERT INTO {table} (id, body, inserted_at, modified_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET body = excluded.body, modified_at = excluded.modified_at",
                (record_id, json.dumps(data, default=str), stamp, stamp)
            )
            self._flush()

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            found = self._documents(table, "WHERE id = ?", (record_id,))
            return found[0] if found else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            return self._documents(table)

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._prepare(table)
            cursor = self._connection.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            self._flush()
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._prepare(table)
            row = self._connection.execute(
                f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,)
            ).fetchone()
            return row is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        with self._lock:
            return _matching(self._documents(table), filters)

    def count(self, table: str) -> int:
        with self._lock:
            self._prepare(table)
            return self._connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._prepare(table)
            self._connection.execute(f"DELETE FROM {table}")
            self._flush()

    def begin_transaction(self) -> None:
        # The deferred transaction itself opens on the first write
        self._lock.acquire()
        self._depth += 1

    def commit(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0:
            self._connection.commit()
        self._lock.release()

    def rollback(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        self._connection.rollback()
        self._known_tables.clear()
        self._lock.release()

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.debug(f"Closed ledger database at {self.db_path}")
