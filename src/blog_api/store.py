"""
Record store contract and the in-memory implementation.

A record store persists plain dict records for one entity type and
offers CRUD by id or by an equality predicate.  Stores may declare
relations which ``find``/``find_one`` attach on request, e.g. the posts
store attaches the public projection of a post's author under
``"author"``.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

Record = Dict[str, Any]
Where = Mapping[str, Any]
Order = Sequence[Tuple[str, str]]


class StoreError(Exception):
    """Base class for record store failures."""


class UniqueViolation(StoreError):
    """A create or update would break a uniqueness constraint."""

    def __init__(self, table: str, field: str) -> None:
        self.table = table
        self.field = field
        super().__init__(f"Duplicate value for {table}.{field}")


@dataclass(frozen=True)
class Relation:
    """A to-one relation resolved through a foreign key on the owning record."""

    name: str
    store: "RecordStore"
    foreign_key: str
    fields: Tuple[str, ...]


def sort_direction(value: str) -> str:
    direction = value.lower()
    if direction not in ("asc", "desc"):
        raise ValueError(f"Unknown sort direction '{value}'")
    return direction


class RecordStore(ABC):
    """Persistence contract shared by all stores."""

    def __init__(self, table: str, relations: Optional[Iterable[Relation]] = None) -> None:
        self.table = table
        self.relations: Dict[str, Relation] = {}
        for relation in relations or ():
            self.add_relation(relation)

    def add_relation(self, relation: Relation) -> None:
        self.relations[relation.name] = relation

    @abstractmethod
    def create(self, fields: Mapping[str, Any]) -> Record:
        """Persist a new record; assigns ``id``, ``created_at`` and ``updated_at``."""

    @abstractmethod
    def find_one(self, where: Where, include: Sequence[str] = ()) -> Optional[Record]:
        """Return the first record matching ``where`` or ``None``."""

    @abstractmethod
    def find(self, where: Optional[Where] = None, include: Sequence[str] = (), order: Order = ()) -> List[Record]:
        """Return every record matching ``where`` in the requested order."""

    @abstractmethod
    def update(self, record_id: int, fields: Mapping[str, Any]) -> None:
        """Apply a partial update. Unknown ids are ignored."""

    @abstractmethod
    def delete(self, record_id: int) -> None:
        """Delete permanently. Unknown ids are ignored."""

    def _relation(self, name: str) -> Relation:
        try:
            return self.relations[name]
        except KeyError:
            raise ValueError(f"Unknown relation '{name}' for {self.table}") from None

    def _attach(self, records: List[Record], include: Sequence[str]) -> List[Record]:
        for name in include:
            relation = self._relation(name)
            resolved: Dict[Any, Optional[Record]] = {}
            for record in records:
                key = record.get(relation.foreign_key)
                if key not in resolved:
                    related = relation.store.find_one({"id": key}) if key is not None else None
                    resolved[key] = (
                        {f: related.get(f) for f in relation.fields} if related is not None else None
                    )
                record[name] = resolved[key]
        return records


class InMemoryRecordStore(RecordStore):
    """Dict-backed store. Each operation runs under a lock."""

    def __init__(
        self,
        table: str,
        unique: Sequence[str] = (),
        relations: Optional[Iterable[Relation]] = None,
    ) -> None:
        super().__init__(table, relations)
        self.unique = tuple(unique)
        self._rows: Dict[int, Record] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def _check_unique(self, candidate: Mapping[str, Any], ignore_id: Optional[int] = None) -> None:
        for field in self.unique:
            if field not in candidate:
                continue
            for row_id, row in self._rows.items():
                if row_id != ignore_id and row.get(field) == candidate[field]:
                    raise UniqueViolation(self.table, field)

    @staticmethod
    def _matches(row: Record, where: Optional[Where]) -> bool:
        return all(row.get(k) == v for k, v in (where or {}).items())

    def create(self, fields: Mapping[str, Any]) -> Record:
        with self._lock:
            self._check_unique(fields)
            now = datetime.now(timezone.utc)
            row = dict(fields)
            row.pop("id", None)
            row.update({"id": next(self._ids), "created_at": now, "updated_at": now})
            self._rows[row["id"]] = row
            return dict(row)

    def find_one(self, where: Where, include: Sequence[str] = ()) -> Optional[Record]:
        with self._lock:
            row = next((r for r in self._rows.values() if self._matches(r, where)), None)
            if row is None:
                return None
            return self._attach([dict(row)], include)[0]

    def find(self, where: Optional[Where] = None, include: Sequence[str] = (), order: Order = ()) -> List[Record]:
        with self._lock:
            rows = [dict(r) for r in self._rows.values() if self._matches(r, where)]
        # Stable sorts applied from the least significant key up.
        for field, direction in reversed(list(order)):
            rows.sort(key=lambda r: r[field], reverse=sort_direction(direction) == "desc")
        return self._attach(rows, include)

    def update(self, record_id: int, fields: Mapping[str, Any]) -> None:
        with self._lock:
            row = self._rows.get(record_id)
            if row is None:
                return
            changes = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
            self._check_unique(changes, ignore_id=record_id)
            row.update(changes)
            row["updated_at"] = datetime.now(timezone.utc)

    def delete(self, record_id: int) -> None:
        with self._lock:
            self._rows.pop(record_id, None)


# PUBLIC_INTERFACE
def create_memory_stores(public_user_fields: Sequence[str]) -> Tuple[RecordStore, RecordStore]:
    """Build the users and posts stores backed by process memory."""
    users = InMemoryRecordStore("users", unique=("username", "email"))
    posts = InMemoryRecordStore(
        "posts",
        relations=[Relation("author", users, "author_id", tuple(public_user_fields))],
    )
    return users, posts
