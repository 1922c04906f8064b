"""Article model for discovered article URLs."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class CaptureStatus(str, Enum):
    PENDING = "pending"
    CAPTURED = "captured"
    CAPTURE_FAILED = "capture_failed"


class ExtractStatus(str, Enum):
    PENDING = "pending"
    EXTRACTED = "extracted"
    EXTRACT_FAILED = "extract_failed"


class Article(BaseModel):
    """One candidate article URL belonging to a source run."""

    url: str = Field(..., description="Canonical article URL")
    basename: str = Field(..., description="File base name shared by the .html and .txt artifacts")
    index: int = Field(..., description="Discovery order within the source")
    capture_status: CaptureStatus = Field(CaptureStatus.PENDING)
    extract_status: ExtractStatus = Field(ExtractStatus.PENDING)
    headline: Optional[str] = Field(None, description="Page title, when known")
    text: Optional[str] = Field(None, description="Extracted verbatim text")
    error: Optional[str] = Field(None, description="Last failure reason")

    @property
    def is_captured(self) -> bool:
        return self.capture_status == CaptureStatus.CAPTURED

    @property
    def is_extracted(self) -> bool:
        return self.extract_status == ExtractStatus.EXTRACTED and bool(self.text)
