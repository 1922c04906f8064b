"""Data models for the pipeline."""

from .article import Article, CaptureStatus, ExtractStatus
from .document import AnalysisDocument, Kind, Scope
from .run import PARSED_TEXT_DIR, RAW_HTML_DIR, SourceRun

__all__ = [
    "AnalysisDocument",
    "Article",
    "CaptureStatus",
    "ExtractStatus",
    "Kind",
    "PARSED_TEXT_DIR",
    "RAW_HTML_DIR",
    "Scope",
    "SourceRun",
]
