"""JSON-file table store with unique keys, ownership checks and atomic procedures."""

import copy
import json
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from pydantic import ValidationError
from rich.console import Console

from lead_pipeline.models import Contact, SearchStatus
from lead_pipeline.models.base import new_id, utcnow

console = Console()

STORE_DIR = Path(".cache")
STORE_FILE = STORE_DIR / "leads.json"

TABLES = ("organizer", "event", "contact", "lead")

# Column tuples that must be unique per table. A key containing a null
# value is not enforced (contacts without email).
UNIQUE_KEYS: dict[str, list[tuple[str, ...]]] = {
    "organizer": [("name", "user_id")],
    "event": [("source_url",)],
    "contact": [("organizer_id", "email")],
    "lead": [("event_id",)],
}

# column -> referenced table; referenced rows must belong to the same user
REFERENCES: dict[str, dict[str, str]] = {
    "event": {"organizer_id": "organizer"},
    "contact": {"organizer_id": "organizer"},
    "lead": {"organizer_id": "organizer", "event_id": "event"},
}

VALID_STATUSES = {s.value for s in SearchStatus}


class StoreError(Exception):
    """Base class for persistence failures."""


class UniqueViolation(StoreError):
    """A row would duplicate a unique key."""

    def __init__(self, table: str, key: tuple[str, ...], values: tuple):
        self.table = table
        self.key = key
        self.values = values
        super().__init__(f"duplicate {table} for {', '.join(key)} = {values}")


class OwnershipError(StoreError):
    """A row references a missing row or one owned by another user."""


class ConstraintError(StoreError):
    """A row fails a table check."""


class RpcUnavailable(StoreError):
    """The backend has no atomic procedure with the requested name."""


Procedure = Callable[..., Any]


class JsonStore:
    """Four-table store persisted as a single JSON document.

    With no path the store lives in memory only, which is what tests use.
    Procedures registered by name run atomically through `rpc`, standing
    in for server-side functions of a SQL backend.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        procedures: Optional[dict[str, Procedure]] = None,
    ):
        self.path = path
        self.procedures: dict[str, Procedure] = dict(procedures or {})
        self._tables: dict[str, dict[str, dict]] = {t: {} for t in TABLES}
        self._depth = 0
        self._load()

    # -- persistence -------------------------------------------------------

    def _load(self) -> None:
        """Load tables from disk."""
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"corrupt store file {self.path}: {e}") from e
        for table in TABLES:
            self._tables[table] = {row["id"]: row for row in data.get(table, [])}
        total = sum(len(rows) for rows in self._tables.values())
        console.print(f"[dim]Loaded {total} rows from {self.path}[/dim]")

    def _save(self) -> None:
        """Write tables to disk, unless inside an atomic block."""
        if self.path is None or self._depth:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump({
                "updated_at": datetime.now().timestamp(),
                **{table: list(rows.values()) for table, rows in self._tables.items()},
            }, f, indent=2, ensure_ascii=False)

    @contextmanager
    def atomic(self) -> Iterator["JsonStore"]:
        """Run a block of mutations all-or-nothing."""
        snapshot = copy.deepcopy(self._tables)
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._tables = snapshot
            raise
        finally:
            self._depth -= 1
        self._save()

    def rpc(self, name: str, **params: Any) -> Any:
        """Call a registered procedure inside a transaction."""
        procedure = self.procedures.get(name)
        if procedure is None:
            raise RpcUnavailable(f"no procedure named {name}")
        with self.atomic():
            return procedure(self, **params)

    # -- queries -----------------------------------------------------------

    def _rows(self, table: str) -> dict[str, dict]:
        if table not in self._tables:
            raise StoreError(f"unknown table {table}")
        return self._tables[table]

    def select(self, table: str, **match: Any) -> list[dict]:
        """Rows whose columns equal every keyword given."""
        return [
            dict(row)
            for row in self._rows(table).values()
            if all(row.get(col) == value for col, value in match.items())
        ]

    def select_one(self, table: str, **match: Any) -> Optional[dict]:
        rows = self.select(table, **match)
        return rows[0] if rows else None

    def get(self, table: str, row_id: str) -> Optional[dict]:
        row = self._rows(table).get(row_id)
        return dict(row) if row else None

    # -- mutations ---------------------------------------------------------

    def insert(self, table: str, row: dict) -> dict:
        """Insert a row after unique, reference and check validation."""
        rows = self._rows(table)
        row = dict(row)
        row.setdefault("id", new_id())
        now = utcnow().isoformat()
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)

        if row["id"] in rows:
            raise UniqueViolation(table, ("id",), (row["id"],))
        self._validate(table, row)
        rows[row["id"]] = row
        self._save()
        return dict(row)

    def update(self, table: str, row_id: str, changes: dict) -> dict:
        """Apply changes to one row, re-validating the result."""
        rows = self._rows(table)
        if row_id not in rows:
            raise StoreError(f"{table} {row_id} not found")
        updated = {**rows[row_id], **changes, "updated_at": utcnow().isoformat()}
        updated["id"] = row_id
        self._validate(table, updated)
        rows[row_id] = updated
        self._save()
        return dict(updated)

    # -- validation --------------------------------------------------------

    def _validate(self, table: str, row: dict) -> None:
        if not row.get("user_id"):
            raise OwnershipError(f"{table} row has no owning user")
        self._check_unique(table, row)
        self._check_references(table, row)
        self._check_row(table, row)

    def _check_unique(self, table: str, row: dict) -> None:
        for key in UNIQUE_KEYS.get(table, []):
            values = tuple(row.get(col) for col in key)
            if any(v is None for v in values):
                continue
            for other in self._tables[table].values():
                if other["id"] == row["id"]:
                    continue
                if tuple(other.get(col) for col in key) == values:
                    raise UniqueViolation(table, key, values)

    def _check_references(self, table: str, row: dict) -> None:
        for column, target in REFERENCES.get(table, {}).items():
            ref = self._tables[target].get(row.get(column) or "")
            if ref is None:
                raise OwnershipError(f"{table}.{column} references missing {target} {row.get(column)}")
            if ref.get("user_id") != row["user_id"]:
                raise OwnershipError(f"{table}.{column} references a {target} owned by another user")

        if table == "lead":
            event = self._tables["event"][row["event_id"]]
            if event.get("organizer_id") != row["organizer_id"]:
                raise OwnershipError("lead organizer does not match its event's organizer")

    def _check_row(self, table: str, row: dict) -> None:
        if table == "contact":
            try:
                Contact.model_validate(row)
            except ValidationError as e:
                raise ConstraintError(f"invalid contact: {e.errors()[0]['msg']}") from e
        elif table == "lead":
            if row.get("search_status") not in VALID_STATUSES:
                raise ConstraintError(f"invalid search_status {row.get('search_status')!r}")
        elif table == "organizer":
            if not (row.get("name") or "").strip():
                raise ConstraintError("organizer name is required")
        elif table == "event":
            if not row.get("source_url"):
                raise ConstraintError("event source_url is required")
