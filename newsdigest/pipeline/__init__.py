"""Pipeline orchestration, stage runners and content packing."""

from .orchestrator import PipelineOrchestrator, PipelineStage, RerunTask, kinds_for
from .packer import PackResult, PackUnit, pack
from .stages import (
    ArticleCaptureStage,
    CombinedSynthesisStage,
    SourceSynthesisStage,
    StageContext,
    StageOutcome,
    TextExtractionStage,
    UrlDiscoveryStage,
)

__all__ = [
    "ArticleCaptureStage",
    "CombinedSynthesisStage",
    "PackResult",
    "PackUnit",
    "PipelineOrchestrator",
    "PipelineStage",
    "RerunTask",
    "SourceSynthesisStage",
    "StageContext",
    "StageOutcome",
    "TextExtractionStage",
    "UrlDiscoveryStage",
    "kinds_for",
    "pack",
]
