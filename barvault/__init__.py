"""barvault - 分钟级行情采集与校验

回填历史分钟K线, 检测并修补缺口, 按交易日历校验数据质量。
"""

from barvault.core import (
    Bar,
    BarVaultConfig,
    ConfigManager,
    FetchJob,
    Gap,
    JobStatus,
    MarketDataOrchestrator,
    MarketSession,
    Pipeline,
    PipelineConfig,
    RawBar,
    SymbolFailure,
    open_pipeline,
)

__version__ = "0.1.0"

__all__ = [
    "Bar",
    "BarVaultConfig",
    "ConfigManager",
    "FetchJob",
    "Gap",
    "JobStatus",
    "MarketDataOrchestrator",
    "MarketSession",
    "Pipeline",
    "PipelineConfig",
    "RawBar",
    "SymbolFailure",
    "open_pipeline",
    "__version__",
]
