"""Example-question synthesis from an uploaded dataset's schema"""
from typing import List, Optional, Sequence

from nlsql_workbench.components.models import Column, Table

DEFAULT_EXAMPLES = [
    "Show me all data",
    "Count the number of rows in each table",
    "Find the top 5 records with highest values",
    "Calculate the average of numeric columns",
]

# Bookkeeping tables a SQLite upload carries alongside the user's data
INTERNAL_TABLES = {"sqlite_sequence", "sqlite_stat1", "sqlite_stat4", "sqlite_master"}

# Key columns make poor aggregation or filter examples
ID_HINTS = {"id", "uuid", "pk", "key"}

NUMERIC_TYPES = ["int", "integer", "number", "decimal", "float", "double"]
TEXT_TYPES = ["text", "varchar", "char", "string"]


def _is_internal(table: Table) -> bool:
    return table.name.lower() in INTERNAL_TABLES


def _is_id_column(name: str) -> bool:
    nl = name.lower()
    return nl.endswith("_id") or nl in ID_HINTS or nl.startswith("id_")


def _classify(column: Column) -> Optional[str]:
    """'numeric', 'text' or None. Numeric substrings are checked first."""
    if _is_id_column(column.name):
        return None
    label = column.type.lower()
    if any(t in label for t in NUMERIC_TYPES):
        return "numeric"
    if any(t in label for t in TEXT_TYPES):
        return "text"
    return None


def pick_main_table(tables: Sequence[Table]) -> Optional[Table]:
    """First non-internal table, else the first table, else None."""
    if not tables:
        return None
    return next((t for t in tables if not _is_internal(t)), tables[0])


def generate_examples(tables: Optional[Sequence[Table]]) -> List[str]:
    """Ranked example questions for a schema, or the generic fallback set."""
    main_table = pick_main_table(tables or [])
    if main_table is None:
        return list(DEFAULT_EXAMPLES)

    examples = [f"Show all records from {main_table.name}"]

    numeric_column = None
    text_column = None
    for column in main_table.columns:
        kind = _classify(column)
        if kind == "numeric" and numeric_column is None:
            numeric_column = column
        elif kind == "text" and text_column is None:
            text_column = column

    if numeric_column:
        examples.append(f"What is the average {numeric_column.name} in {main_table.name}?")
        examples.append(f"Find the highest {numeric_column.name} in {main_table.name}")

    if text_column:
        examples.append(f'Search for records where {text_column.name} contains "example"')

    return examples


def describe_schema(tables: Optional[Sequence[Table]]) -> str:
    """Markdown summary of tables and their columns"""
    if not tables:
        return "*No schema available yet.*"
    lines = []
    for table in tables:
        header = f"**{table.name}**"
        if table.row_count:
            header += f" ({table.row_count} rows)"
        lines.append(header)
        for column in table.columns:
            lines.append(f"- `{column.name}` ({column.type or 'unknown'})")
        lines.append("")
    return "\n".join(lines).strip()
