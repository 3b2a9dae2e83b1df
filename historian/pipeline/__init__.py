"""Pipeline de ingesta del historiador."""

from .config import PipelineConfig
from .ingestion import AppendResult, IngestionPipeline, IngestionStartupError, PipelineState
from .stats import PipelineStats

__all__ = [
    "AppendResult",
    "IngestionPipeline",
    "IngestionStartupError",
    "PipelineConfig",
    "PipelineState",
    "PipelineStats",
]
