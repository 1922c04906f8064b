"""On-disk artifact storage."""

from .artifacts import ArtifactIndex, ArtifactStore, parse_document_name

__all__ = ["ArtifactIndex", "ArtifactStore", "parse_document_name"]
