# Overview: Service-layer operations for table export; produces flat records for CSV serialization.

"""
Export format

- dump_table() yields one flat record per row, keyed by column name in
  table column order, rows in id order.
- None becomes "". Strings and datetimes (as UTC ISO-8601 'Z') are wrapped
  in double quotes with embedded quotes doubled. Numbers and booleans are
  passed through unquoted.
- to_csv() joins a header line (column names quoted like string values)
  and one line per record with commas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from ..time_utils import to_utc_z


def quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def serialize_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return quote(to_utc_z(value))
    if isinstance(value, str):
        return quote(value)
    return value


def dump_table(store, table_name: str) -> list[dict]:
    """Raises NotFoundError for an unknown table name."""
    model = store.model_for_table(table_name)
    columns = [column.key for column in model.__mapper__.columns]
    records = []
    for row in store.select(model):
        records.append({key: serialize_value(getattr(row, key)) for key in columns})
    return records


def table_columns(store, table_name: str) -> list[str]:
    model = store.model_for_table(table_name)
    return [column.key for column in model.__mapper__.columns]


def to_csv(records: list[dict], columns: list[str] | None = None) -> str:
    if columns is None:
        columns = list(records[0].keys()) if records else []
    lines = [",".join(quote(key) for key in columns)]
    for record in records:
        lines.append(",".join(str(record.get(key, "")) for key in columns))
    return "\n".join(lines) + "\n"


def export_table_csv(store, table_name: str) -> str:
    """Header is written even for an empty table."""
    return to_csv(dump_table(store, table_name), table_columns(store, table_name))
