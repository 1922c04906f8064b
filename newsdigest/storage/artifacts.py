"""Artifact storage: documents, article files and the per-source manifest."""

import json
import logging
import re
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import ArtifactNotFoundError
from ..models import (
    PARSED_TEXT_DIR,
    RAW_HTML_DIR,
    AnalysisDocument,
    Article,
    CaptureStatus,
    ExtractStatus,
    Kind,
    Scope,
)

logger = logging.getLogger(__name__)

MANIFEST_NAME = "articles.json"

COMBINED_PREFIXES = {
    Kind.DIGEST: "daily_digest",
    Kind.ESSAY: "analysis_essay",
}

_SOURCE_DOC_RE = re.compile(
    r"^(?P<kind>digest|essay)_(?P<source>.+?)_(?P<date>\d{4}-\d{2}-\d{2})"
    r"_(?P<model>[A-Za-z0-9_]+)_(?P<ts>\d+)\.md$"
)
_COMBINED_DOC_RE = re.compile(
    r"^(?P<prefix>daily_digest|analysis_essay)_(?P<date>\d{4}-\d{2}-\d{2})"
    r"_(?P<model>[A-Za-z0-9_]+)_(?P<ts>\d+)\.md$"
)
# Older combined names carry no timestamp
_UNTIMESTAMPED_COMBINED_DOC_RE = re.compile(
    r"^(?P<prefix>daily_digest|analysis_essay)_(?P<date>\d{4}-\d{2}-\d{2})"
    r"_(?P<model>[A-Za-z0-9_]+)\.md$"
)


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_document_name(path: Path) -> Optional[AnalysisDocument]:
    """Parse an artifact filename into a document record (content not loaded)."""
    name = path.name

    match = _SOURCE_DOC_RE.match(name)
    if match:
        return AnalysisDocument(
            scope=Scope.SOURCE,
            kind=Kind(match["kind"]),
            model=match["model"],
            timestamp=int(match["ts"]),
            path=path,
            source=match["source"],
            run_date=match["date"],
        )

    match = _COMBINED_DOC_RE.match(name)
    if match:
        timestamp = int(match["ts"])
    else:
        match = _UNTIMESTAMPED_COMBINED_DOC_RE.match(name)
        if not match:
            return None
        # Untimestamped combined names date from the file itself
        timestamp = int(path.stat().st_mtime * 1000)

    kind = Kind.DIGEST if match["prefix"] == COMBINED_PREFIXES[Kind.DIGEST] else Kind.ESSAY
    return AnalysisDocument(
        scope=Scope.COMBINED,
        kind=kind,
        model=match["model"],
        timestamp=timestamp,
        path=path,
        run_date=match["date"],
    )


class ArtifactIndex:
    """Documents of one directory grouped by (scope, kind), oldest first."""

    def __init__(self, documents: Iterable[AnalysisDocument]) -> None:
        grouped: Dict[Tuple[Scope, Kind], List[AnalysisDocument]] = {}
        for document in documents:
            grouped.setdefault((document.scope, document.kind), []).append(document)

        self._records: Dict[Tuple[Scope, Kind], List[AnalysisDocument]] = {}
        for key, group in grouped.items():
            group.sort(key=lambda d: (d.timestamp, d.path.name))
            self._records[key] = [
                d.model_copy(update={"index": i}) for i, d in enumerate(group)
            ]

    @classmethod
    def scan(cls, directory: Path) -> "ArtifactIndex":
        if not directory.is_dir():
            return cls([])
        documents = []
        for path in sorted(directory.glob("*.md")):
            document = parse_document_name(path)
            if document is not None:
                documents.append(document)
        return cls(documents)

    def records(
        self,
        scope: Scope,
        kind: Kind,
        source: Optional[str] = None,
    ) -> List[AnalysisDocument]:
        records = self._records.get((scope, kind), [])
        if source is not None:
            records = [r for r in records if r.source == source]
        return list(records)

    def latest(
        self,
        scope: Scope,
        kind: Kind,
        source: Optional[str] = None,
    ) -> Optional[AnalysisDocument]:
        records = self.records(scope, kind, source)
        return records[-1] if records else None

    def __len__(self) -> int:
        return sum(len(group) for group in self._records.values())


class ArtifactStore:
    """
    Filesystem artifact tree rooted at ``root``.

    Layout: ``<root>/<run-date>/<source>/{raw_html,parsed_text}/`` for article
    files, source documents beside them, combined documents in the run-date
    directory. Single writer per directory; nothing here locks.
    """

    def __init__(self, root: Path, clock: Callable[[], int] = now_ms) -> None:
        self.root = root
        self._clock = clock

    # Documents

    def document_name(
        self,
        scope: Scope,
        kind: Kind,
        directory: Path,
        model: str,
        timestamp: int,
    ) -> str:
        if scope == Scope.SOURCE:
            source = directory.name
            run_date = directory.parent.name
            return f"{kind.value}_{source}_{run_date}_{model}_{timestamp}.md"
        run_date = directory.name
        return f"{COMBINED_PREFIXES[kind]}_{run_date}_{model}_{timestamp}.md"

    def write(
        self,
        scope: Scope,
        kind: Kind,
        directory: Path,
        content: str,
        model: str = "default",
    ) -> Path:
        """Write a new timestamped document. Existing files are never replaced."""
        directory.mkdir(parents=True, exist_ok=True)
        timestamp = self._clock()
        while True:
            path = directory / self.document_name(scope, kind, directory, model, timestamp)
            try:
                with open(path, "x", encoding="utf-8") as f:
                    f.write(content)
            except FileExistsError:
                timestamp += 1
                continue
            logger.info("Saved %s %s: %s", scope.value, kind.value, path.name)
            return path

    def index(self, directory: Path) -> ArtifactIndex:
        return ArtifactIndex.scan(directory)

    def latest(self, scope: Scope, kind: Kind, directory: Path) -> AnalysisDocument:
        """
        Latest document of ``scope``/``kind`` in ``directory``, content loaded.

        Raises:
            ArtifactNotFoundError: No matching document exists
        """
        source = directory.name if scope == Scope.SOURCE else None
        document = self.index(directory).latest(scope, kind, source)
        if document is None:
            raise ArtifactNotFoundError(
                f"No {scope.value} {kind.value} found in {directory}",
                {"scope": scope.value, "kind": kind.value, "directory": str(directory)},
            )
        return document.model_copy(update={"content": document.path.read_text(encoding="utf-8")})

    # Run-date layout

    def date_dir(self, run_date: str) -> Path:
        return self.root / run_date

    def source_dirs(self, date_dir: Path) -> List[Path]:
        """Source directories of a run-date, alphabetical."""
        if not date_dir.is_dir():
            return []
        return sorted(
            d for d in date_dir.iterdir()
            if d.is_dir() and d.name != "archive"
        )

    # Articles

    def raw_html_path(self, source_dir: Path, basename: str) -> Path:
        return source_dir / RAW_HTML_DIR / f"{basename}.html"

    def parsed_text_path(self, source_dir: Path, basename: str) -> Path:
        return source_dir / PARSED_TEXT_DIR / f"{basename}.txt"

    def read_raw_html(self, source_dir: Path, basename: str) -> str:
        return self.raw_html_path(source_dir, basename).read_text(encoding="utf-8")

    def write_article_text(self, source_dir: Path, basename: str, text: str) -> Path:
        path = self.parsed_text_path(source_dir, basename)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def load_manifest(self, source_dir: Path) -> List[Article]:
        path = source_dir / MANIFEST_NAME
        if not path.exists():
            return []
        data = json.loads(path.read_text(encoding="utf-8"))
        return [Article(**entry) for entry in data.get("articles", [])]

    def save_manifest(self, source_dir: Path, articles: List[Article]) -> None:
        """Persist article records (without text) in discovery order."""
        source_dir.mkdir(parents=True, exist_ok=True)
        entries = [
            article.model_dump(mode="json", exclude={"text"})
            for article in sorted(articles, key=lambda a: a.index)
        ]
        path = source_dir / MANIFEST_NAME
        path.write_text(json.dumps({"articles": entries}, indent=2), encoding="utf-8")

    def list_articles(self, source_dir: Path) -> List[Article]:
        """
        Article records of a source directory, in discovery order.

        Manifest entries come first. Files without a manifest entry are
        correlated by base name (``raw_html/x.html`` with ``parsed_text/x.txt``)
        and appended alphabetically. Status follows the files on disk.
        """
        articles: Dict[str, Article] = {a.basename: a for a in self.load_manifest(source_dir)}
        next_index = max((a.index for a in articles.values()), default=-1) + 1

        raw_names = {p.stem for p in (source_dir / RAW_HTML_DIR).glob("*.html")}
        text_names = {p.stem for p in (source_dir / PARSED_TEXT_DIR).glob("*.txt")}

        for basename in sorted((raw_names | text_names) - set(articles)):
            articles[basename] = Article(
                url=f"(source_file: {basename})",
                basename=basename,
                index=next_index,
            )
            next_index += 1

        result = []
        for article in sorted(articles.values(), key=lambda a: a.index):
            update = {}
            if article.basename in raw_names:
                update["capture_status"] = CaptureStatus.CAPTURED
            if article.basename in text_names:
                update["extract_status"] = ExtractStatus.EXTRACTED
                update["text"] = self.parsed_text_path(source_dir, article.basename).read_text(
                    encoding="utf-8"
                )
                if article.capture_status == CaptureStatus.PENDING and "capture_status" not in update:
                    update["capture_status"] = CaptureStatus.CAPTURED
            result.append(article.model_copy(update=update))
        return result
