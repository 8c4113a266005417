"""barvault 核心模块"""

from barvault.core.config.settings import BarVaultConfig, ConfigManager, PipelineConfig
from barvault.core.models import Bar, FetchJob, Gap, JobStatus, MarketSession, RawBar
from barvault.core.patterns import SymbolFailure
from barvault.core.pipeline import Pipeline, open_pipeline
from barvault.core.services import MarketDataOrchestrator

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
]
