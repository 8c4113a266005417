"""Utility helpers for creating DuckDB connections for the pipeline and tests."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

from barvault.core.data.schema import ensure_schema
from barvault.core.exceptions import StorageError

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from duckdb import DuckDBPyConnection

    from barvault.core.config import StorageConfig


@dataclass(frozen=True)
class DuckDBFactoryConfig:
    """Configuration applied to DuckDB connections produced by the factory."""

    database: str | Path = ":memory:"
    read_only: bool = False
    pragmas: Mapping[str, object] = field(default_factory=lambda: {"threads": 1})
    create_schema: bool = True

    @classmethod
    def from_storage(cls, storage: StorageConfig) -> DuckDBFactoryConfig:
        database = storage.database
        if database != ":memory:":
            path = Path(database).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            database = str(path)
        return cls(database=database, pragmas={"threads": storage.threads})


class BarVaultDuckDBFactory:
    """Factory that yields configured DuckDB connections with the pipeline schema."""

    def __init__(self, config: DuckDBFactoryConfig | None = None) -> None:
        self._config = config or DuckDBFactoryConfig()

    @property
    def config(self) -> DuckDBFactoryConfig:
        return self._config

    def create_connection(self) -> DuckDBPyConnection:
        """Create and return a configured DuckDB connection."""

        try:
            conn = duckdb.connect(database=str(self._config.database), read_only=self._config.read_only)
        except duckdb.Error as exc:
            raise StorageError(f"Cannot open DuckDB database {self._config.database}: {exc}") from exc
        self._apply_pragmas(conn)
        if self._config.create_schema and not self._config.read_only:
            ensure_schema(conn)
        return conn

    @contextmanager
    def connection(self) -> Iterator[DuckDBPyConnection]:
        """Context manager that yields a configured DuckDB connection."""

        conn = self.create_connection()
        try:
            yield conn
        finally:
            conn.close()

    def _apply_pragmas(self, conn: DuckDBPyConnection) -> None:
        for setting, value in self._config.pragmas.items():
            conn.execute(f"SET {setting}={value}")


__all__ = ["BarVaultDuckDBFactory", "DuckDBFactoryConfig"]
