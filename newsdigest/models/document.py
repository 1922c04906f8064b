"""Analysis document model."""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Scope(str, Enum):
    SOURCE = "source"
    COMBINED = "combined"


class Kind(str, Enum):
    DIGEST = "digest"
    ESSAY = "essay"


class AnalysisDocument(BaseModel):
    """One generated digest or essay. Never rewritten once on disk."""

    model_config = ConfigDict(frozen=True)

    scope: Scope
    kind: Kind
    model: str = Field(..., description="Model suffix used in the filename")
    timestamp: int = Field(..., description="Creation time in epoch milliseconds")
    index: int = Field(0, description="Creation order within its directory scan")
    path: Path
    source: Optional[str] = Field(None, description="Source name for source-scope documents")
    run_date: Optional[str] = None
    content: Optional[str] = Field(None, description="Document text, when loaded")

    def read(self) -> str:
        """Return the content, reading it from disk if needed."""
        if self.content is not None:
            return self.content
        return self.path.read_text(encoding="utf-8")
