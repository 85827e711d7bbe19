"""Ingestion pipeline: stage sequencing and the result envelope."""

from .orchestrator import IngestionPipeline
from .result import PipelineResult, PipelineStatus, Stage, StageFailure

__all__ = [
    "IngestionPipeline",
    "PipelineResult",
    "PipelineStatus",
    "Stage",
    "StageFailure",
]
