"""配置管理模块 - 处理barvault流水线的配置"""

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from barvault.core.exceptions import ConfigError
from barvault.core.logging import logger

DEFAULT_SYMBOLS: tuple[str, ...] = (
    "AAPL",
    "TSLA",
    "NVDA",
    "PLTR",
    "GOOGL",
    "MSFT",
    "AMZN",
    "META",
    "AMD",
    "NFLX",
    "CRM",
    "ADBE",
    "SPY",
    "QQQ",
    "SMH",
    "DIA",
    "IWM",
)


@dataclass
class QualityThresholdConfig:
    """数据质量阈值配置 (warn < fail)"""

    missing_pct_warn: float = 0.5
    missing_pct_fail: float = 1.0
    ohlc_violations_warn: float = 0.0
    ohlc_violations_fail: float = 10.0


@dataclass
class PipelineConfig:
    """行情采集流水线配置"""

    symbols: list[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    max_concurrency: int = 5
    batch_size: int = 1000
    max_retries: int = 3
    retry_delay_seconds: float = 5.0
    max_window_days: int = 30
    gap_lookback_hours: int = 24
    max_gap_minutes: int = 1440
    gap_timeout_seconds: float | None = 60.0
    backfill_timeout_seconds: float | None = None
    verify_gap_lookback_days: int = 30
    thresholds: QualityThresholdConfig = field(default_factory=QualityThresholdConfig)

    def __post_init__(self) -> None:
        if isinstance(self.thresholds, dict):
            self.thresholds = QualityThresholdConfig(**self.thresholds)
        self.symbols = parse_symbols(self.symbols)
        if self.max_concurrency <= 0:
            raise ConfigError("max_concurrency must be positive", {"max_concurrency": self.max_concurrency})
        if self.batch_size <= 0:
            raise ConfigError("batch_size must be positive", {"batch_size": self.batch_size})
        if self.max_retries <= 0:
            raise ConfigError("max_retries must be positive", {"max_retries": self.max_retries})
        if self.max_window_days <= 0:
            raise ConfigError("max_window_days must be positive", {"max_window_days": self.max_window_days})
        if self.thresholds.missing_pct_warn >= self.thresholds.missing_pct_fail:
            raise ConfigError("missing_pct_warn must be below missing_pct_fail")
        if self.thresholds.ohlc_violations_warn >= self.thresholds.ohlc_violations_fail:
            raise ConfigError("ohlc_violations_warn must be below ohlc_violations_fail")


@dataclass
class StorageConfig:
    """存储配置"""

    database: str = str(Path.home() / ".barvault" / "bars.duckdb")
    threads: int = 4


@dataclass
class ProviderConfig:
    """行情提供商配置"""

    data_url: str = "https://data.alpaca.markets"
    api_url: str = "https://paper-api.alpaca.markets"
    api_key: str | None = None
    api_secret: str | None = None
    feed: str = "iex"
    timeout: float = 30.0


@dataclass
class LoggingConfig:
    """日志配置"""

    level: str = "INFO"
    file: str | None = None


@dataclass
class BarVaultConfig:
    """barvault主配置"""

    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "BarVaultConfig":
        """从字典创建配置"""
        try:
            return cls(
                pipeline=PipelineConfig(**config_dict.get("pipeline", {})),
                storage=StorageConfig(**config_dict.get("storage", {})),
                provider=ProviderConfig(**config_dict.get("provider", {})),
                logging=LoggingConfig(**config_dict.get("logging", {})),
            )
        except TypeError as exc:
            raise ConfigError(f"Unknown configuration key: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        """转换为字典"""
        return {
            "pipeline": asdict(self.pipeline),
            "storage": asdict(self.storage),
            "provider": asdict(self.provider),
            "logging": asdict(self.logging),
        }


class ConfigManager:
    """配置管理器"""

    def __init__(self, config_path: Path | None = None, *, use_env: bool = True):
        """初始化配置管理器

        Args:
            config_path: 配置文件路径，如果为None则使用默认路径
            use_env: 是否合并环境变量中的配置
        """
        self.config_path = config_path or Path.home() / ".barvault" / "config.toml"
        self.use_env = use_env
        self.config = self._load_config()

    def _load_config(self) -> BarVaultConfig:
        """加载配置 (文件 < 环境变量)"""
        config_dict: dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    config_dict = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                config_dict = {}

        if self.use_env:
            _deep_update(config_dict, load_config_from_env())
        return BarVaultConfig.from_dict(config_dict)

    def get_config(self) -> BarVaultConfig:
        """获取当前配置"""
        return self.config

    def update_config(self, **updates: Any) -> None:
        """更新配置"""
        config_dict = self.config.to_dict()
        _deep_update(config_dict, updates)
        self.config = BarVaultConfig.from_dict(config_dict)


def _deep_update(d: dict[str, Any], u: dict[str, Any]) -> dict[str, Any]:
    """深度更新字典"""
    for k, v in u.items():
        if isinstance(v, dict):
            d[k] = _deep_update(d.get(k, {}), v)
        else:
            d[k] = v
    return d


def parse_symbols(symbols: str | list[str] | tuple[str, ...] | None) -> list[str]:
    """Normalize a comma separated string or sequence of symbols, preserving order."""

    if symbols is None:
        return []
    candidates = symbols.split(",") if isinstance(symbols, str) else list(symbols)
    unique: list[str] = []
    for candidate in candidates:
        value = str(candidate).strip().upper()
        if value and value not in unique:
            unique.append(value)
    return unique


def get_default_config() -> BarVaultConfig:
    """获取默认配置"""
    return BarVaultConfig()


def load_config_from_env() -> dict[str, Any]:
    """从环境变量加载配置"""
    config: dict[str, Any] = {}

    # 流水线配置
    pipeline_config: dict[str, Any] = {}
    barvault_symbols = os.getenv("BARVAULT_SYMBOLS")
    if barvault_symbols:
        pipeline_config["symbols"] = parse_symbols(barvault_symbols)
    barvault_max_concurrency = os.getenv("BARVAULT_MAX_CONCURRENCY")
    if barvault_max_concurrency is not None:
        pipeline_config["max_concurrency"] = int(barvault_max_concurrency)
    barvault_retry_delay = os.getenv("BARVAULT_RETRY_DELAY_SECONDS")
    if barvault_retry_delay is not None:
        pipeline_config["retry_delay_seconds"] = float(barvault_retry_delay)
    if pipeline_config:
        config["pipeline"] = pipeline_config

    # 存储配置
    barvault_database = os.getenv("BARVAULT_DATABASE")
    if barvault_database:
        config["storage"] = {"database": barvault_database}

    # 提供商配置
    provider_config: dict[str, Any] = {}
    alpaca_api_key = os.getenv("ALPACA_API_KEY")
    if alpaca_api_key:
        provider_config["api_key"] = alpaca_api_key
    alpaca_api_secret = os.getenv("ALPACA_API_SECRET")
    if alpaca_api_secret:
        provider_config["api_secret"] = alpaca_api_secret
    alpaca_feed = os.getenv("ALPACA_DATA_FEED")
    if alpaca_feed:
        provider_config["feed"] = alpaca_feed
    if provider_config:
        config["provider"] = provider_config

    # 日志配置
    barvault_logging_level = os.getenv("BARVAULT_LOGGING_LEVEL")
    if barvault_logging_level is not None:
        config["logging"] = {"level": barvault_logging_level}

    return config
