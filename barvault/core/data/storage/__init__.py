"""DuckDB-backed storage adapters."""

from barvault.core.data.storage.bar_store import BarPredicate, BarStore, DuckDBBarStore
from barvault.core.data.storage.duckdb_factory import BarVaultDuckDBFactory, DuckDBFactoryConfig

__all__ = ["BarPredicate", "BarStore", "BarVaultDuckDBFactory", "DuckDBBarStore", "DuckDBFactoryConfig"]
