"""DuckDB table schemas for bars, backfill jobs and the trading calendar."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


@dataclass(frozen=True)
class ColumnDef:
    """Represents a DuckDB table column definition."""

    name: str
    data_type: str
    constraints: Sequence[str] = ()

    def render(self) -> str:
        parts = [self.name, self.data_type, *self.constraints]
        return " ".join(parts)


@dataclass(frozen=True)
class TableSchema:
    """Utility wrapper describing a DuckDB table schema."""

    name: str
    columns: Sequence[ColumnDef]
    primary_key: Sequence[str] = ()
    unique: Sequence[Sequence[str]] = ()

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def create_ddl(self) -> str:
        column_defs: list[str] = [column.render() for column in self.columns]
        if self.primary_key:
            pk_cols = ", ".join(self.primary_key)
            column_defs.append(f"PRIMARY KEY ({pk_cols})")
        for group in self.unique:
            column_defs.append(f"UNIQUE ({', '.join(group)})")
        columns_sql = ",\n                ".join(column_defs)
        return f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                {columns_sql}
            )
            """.strip()

    def ensure(self, conn: DuckDBPyConnection) -> None:
        """Create the table on the provided connection if it does not exist."""

        conn.execute(self.create_ddl())


PRICE_TYPE = "DECIMAL(18,6)"

MARKET_BARS_TABLE = TableSchema(
    name="market_bars",
    columns=(
        ColumnDef("symbol", "VARCHAR", ("NOT NULL",)),
        ColumnDef("bar_time", "TIMESTAMP", ("NOT NULL",)),
        ColumnDef("open", PRICE_TYPE, ("NOT NULL",)),
        ColumnDef("high", PRICE_TYPE, ("NOT NULL",)),
        ColumnDef("low", PRICE_TYPE, ("NOT NULL",)),
        ColumnDef("close", PRICE_TYPE, ("NOT NULL",)),
        ColumnDef("volume", "BIGINT", ("NOT NULL",)),
        ColumnDef("vwap", PRICE_TYPE),
        ColumnDef("trade_count", "BIGINT"),
        ColumnDef("session", "VARCHAR", ("NOT NULL",)),
        ColumnDef("trade_date", "DATE", ("NOT NULL",)),
        ColumnDef("updated_at", "TIMESTAMP", ("NOT NULL",)),
    ),
    primary_key=("symbol", "bar_time"),
)

FETCH_JOBS_TABLE = TableSchema(
    name="historical_fetch_jobs",
    columns=(
        ColumnDef("id", "VARCHAR", ("NOT NULL",)),
        ColumnDef("symbol", "VARCHAR", ("NOT NULL",)),
        ColumnDef("start_date", "DATE", ("NOT NULL",)),
        ColumnDef("end_date", "DATE", ("NOT NULL",)),
        ColumnDef("status", "VARCHAR", ("NOT NULL",)),
        ColumnDef("bars_loaded", "BIGINT", ("NOT NULL", "DEFAULT 0")),
        ColumnDef("last_bar_time", "TIMESTAMP"),
        ColumnDef("error_message", "VARCHAR"),
        ColumnDef("started_at", "TIMESTAMP"),
        ColumnDef("completed_at", "TIMESTAMP"),
        ColumnDef("inserted_at", "TIMESTAMP", ("NOT NULL",)),
        ColumnDef("updated_at", "TIMESTAMP", ("NOT NULL",)),
    ),
    primary_key=("id",),
    unique=(("symbol", "start_date", "end_date"),),
)

MARKET_CALENDAR_TABLE = TableSchema(
    name="market_calendar",
    columns=(
        ColumnDef("date", "DATE", ("NOT NULL",)),
        ColumnDef("open", "TIME", ("NOT NULL",)),
        ColumnDef("close", "TIME", ("NOT NULL",)),
    ),
    primary_key=("date",),
)

ALL_TABLES: tuple[TableSchema, ...] = (MARKET_BARS_TABLE, FETCH_JOBS_TABLE, MARKET_CALENDAR_TABLE)


def ensure_schema(conn: DuckDBPyConnection, tables: Iterable[TableSchema] = ALL_TABLES) -> None:
    """Create every pipeline table that does not exist yet."""

    for table in tables:
        table.ensure(conn)


__all__ = [
    "ALL_TABLES",
    "FETCH_JOBS_TABLE",
    "MARKET_BARS_TABLE",
    "MARKET_CALENDAR_TABLE",
    "ColumnDef",
    "TableSchema",
    "ensure_schema",
]
