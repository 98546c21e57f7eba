"""Data model shared by the workbench components"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from nlsql_workbench.components.errors import QueryError

Scalar = Union[str, int, float, bool, None]
Row = Dict[str, Scalar]


@dataclass(frozen=True)
class Column:
    """A column as reported by the backend. ``type`` is a free-form label."""

    name: str
    type: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(name=str(data["name"]), type=str(data.get("type") or ""))


@dataclass(frozen=True)
class Table:
    """A table with its columns in declared order"""

    name: str
    columns: List[Column] = field(default_factory=list)
    row_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Table":
        row_count = data.get("row_count", data.get("rowCount")) or 0
        return cls(
            name=str(data["name"]),
            columns=[Column.from_dict(c) for c in data.get("columns") or []],
            row_count=max(int(row_count), 0),
        )


@dataclass
class Session:
    """Binding between one uploaded dataset and the queries issued against it.

    Lives in memory only. ``server_scoped`` is False when the backend issued
    no session id and ``id`` was generated locally; queries then go out
    without a ``session_id``.
    """

    id: str
    filename: str = ""
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    schema: Optional[List[Table]] = None
    schema_text: Optional[str] = None
    server_scoped: bool = True


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class QueryRecord:
    """One successful natural-language/SQL pair"""

    natural_language: str
    sql: str
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, str]:
        return {"query": self.natural_language, "sql": self.sql, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryRecord":
        """Parse a persisted record. Raises KeyError/TypeError when malformed."""
        if not isinstance(data, dict):
            raise TypeError(f"history entry must be an object, got {type(data).__name__}")
        for key in ("query", "naturalLanguage", "natural_language"):
            if key in data:
                text = data[key]
                break
        else:
            raise KeyError("query")
        sql = data["sql"]
        timestamp = data["timestamp"]
        if not all(isinstance(v, str) for v in (text, sql, timestamp)):
            raise TypeError("history entry fields must be strings")
        return cls(natural_language=text, sql=sql, timestamp=timestamp)


class ResultSet:
    """Rows returned for one query, all sharing the same columns in the same order.

    An empty ResultSet means the query matched nothing; the controller uses
    ``None`` for "no query run yet".
    """

    def __init__(self, columns: List[str], rows: List[Row]):
        self.columns = columns
        self.rows = rows

    @classmethod
    def from_rows(cls, rows: Optional[List[Dict[str, Any]]]) -> "ResultSet":
        """Build from backend rows, enforcing a uniform column set and order."""
        rows = rows or []
        if not isinstance(rows, list):
            raise QueryError("Backend returned results that are not a list of rows.", "bad_response")
        if not rows:
            return cls([], [])
        columns: List[str] = []
        normalized: List[Row] = []
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                raise QueryError(f"Result row {index} is not an object.", "bad_response")
            keys = list(row.keys())
            if index == 0:
                columns = keys
            elif keys != columns:
                raise QueryError(
                    f"Result row {index} has columns {keys}, expected {columns}.",
                    "bad_response",
                )
            for key, value in row.items():
                if value is not None and not isinstance(value, (str, int, float, bool)):
                    raise QueryError(
                        f"Result value for {key!r} in row {index} is not a scalar.",
                        "bad_response",
                    )
            normalized.append(dict(row))
        return cls(columns, normalized)

    def as_table(self) -> List[List[Scalar]]:
        """Rows as lists in column order, for grid widgets."""
        return [[row[c] for c in self.columns] for row in self.rows]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def __eq__(self, other) -> bool:
        if isinstance(other, ResultSet):
            return self.columns == other.columns and self.rows == other.rows
        if isinstance(other, list):
            return self.rows == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"ResultSet(columns={self.columns!r}, rows={len(self.rows)})"


class RecordingState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    ERROR = "error"
