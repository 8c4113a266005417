"""Configuration management module."""

from barvault.core.config.settings import (
    DEFAULT_SYMBOLS,
    BarVaultConfig,
    ConfigManager,
    LoggingConfig,
    PipelineConfig,
    ProviderConfig,
    QualityThresholdConfig,
    StorageConfig,
    get_default_config,
    load_config_from_env,
    parse_symbols,
)

__all__ = [
    "DEFAULT_SYMBOLS",
    "BarVaultConfig",
    "ConfigManager",
    "LoggingConfig",
    "PipelineConfig",
    "ProviderConfig",
    "QualityThresholdConfig",
    "StorageConfig",
    "get_default_config",
    "load_config_from_env",
    "parse_symbols",
]
