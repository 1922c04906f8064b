"""Source run model."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

RAW_HTML_DIR = "raw_html"
PARSED_TEXT_DIR = "parsed_text"


class SourceRun(BaseModel):
    """One source URL processed on one run-date."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Source identifier derived from the hostname")
    url: str = Field(..., description="Source page URL")
    run_date: str = Field(..., description="Run-date (YYYY-MM-DD)")
    root: Path = Field(..., description="Root of the artifact tree")
    index: int = Field(0, description="Position in the source registry")

    @property
    def date_dir(self) -> Path:
        return self.root / self.run_date

    @property
    def source_dir(self) -> Path:
        return self.date_dir / self.name

    @property
    def raw_html_dir(self) -> Path:
        return self.source_dir / RAW_HTML_DIR

    @property
    def parsed_text_dir(self) -> Path:
        return self.source_dir / PARSED_TEXT_DIR

    def ensure_dirs(self) -> None:
        """Create the raw and parsed directories."""
        self.raw_html_dir.mkdir(parents=True, exist_ok=True)
        self.parsed_text_dir.mkdir(parents=True, exist_ok=True)
