"""Content data models: front matter, documents, summaries and the build report"""

from dataclasses import dataclass, field
import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class FrontMatter(BaseModel):
    """Known front matter fields plus an opaque, ordered map of every other key."""
    layout: str
    title: str
    tags: list[str] = Field(default_factory=list)     # display order; duplicates removed
    extra: dict[str, Any] = Field(default_factory=dict)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FrontMatter):
            return NotImplemented
        return (
            self.layout == other.layout
            and self.title == other.title
            and set(self.tags) == set(other.tags)
            and self.extra == other.extra
        )

    def as_context(self) -> dict[str, Any]:
        """Flatten into a single template mapping; known fields win over extras."""
        return {**self.extra, "layout": self.layout, "title": self.title, "tags": list(self.tags)}


class DocumentSummary(BaseModel):
    """Read-only view of a Document used for cross-links, listings and the manifest."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    url: str
    date: datetime.date
    tags: tuple[str, ...] = ()
    excerpt: str = ""
    source_path: str = ""


def site_url(base_url: str, path: str) -> str:
    """Join base_url and a site-relative output path."""
    return f"{base_url.rstrip('/')}/{path}"


@dataclass
class Document:
    """One parsed content unit; rendered_body/rendered_page are filled by the renderer."""
    id:             str
    source_path:    str            # relative to the content root, POSIX form
    metadata:       FrontMatter
    body:           str            # markdown, front matter stripped
    published_at:   datetime.date
    content_hash:   str = ""
    excerpt:        str = ""
    draft:          bool = False
    rendered_body:  Optional[str] = None
    rendered_page:  Optional[str] = None

    @property
    def title(self) -> str:
        return self.metadata.title

    @property
    def url(self) -> str:
        """Output path relative to the site root: YYYY/MM/DD/<id>.html"""
        return f"{self.published_at:%Y/%m/%d}/{self.id}.html"

    def summary(self, base_url: str = "/") -> DocumentSummary:
        return DocumentSummary(
            id=self.id,
            title=self.title,
            url=site_url(base_url, self.url),
            date=self.published_at,
            tags=tuple(self.metadata.tags),
            excerpt=self.excerpt,
            source_path=self.source_path,
        )


class BuildStage(str, Enum):
    """Site build state machine; failed is reached only when no document succeeds."""
    discover = "discover"
    parse_all = "parse_all"
    index_built = "index_built"
    render_all = "render_all"
    write = "write"
    done = "done"
    failed = "failed"


@dataclass
class DocumentFailure:
    path:       str
    kind:       str            # error class name, e.g. MissingField
    message:    str
    doc_id:     Optional[str] = None


@dataclass
class BuildReport:
    stage:      BuildStage = BuildStage.discover
    succeeded:  list[str] = field(default_factory=list)
    failures:   list[DocumentFailure] = field(default_factory=list)
    skipped:    list[str] = field(default_factory=list)
    written:    list[Path] = field(default_factory=list)
    counts:     dict[str, int] = field(default_factory=lambda: {"created": 0, "updated": 0, "unchanged": 0})

    @property
    def ok(self) -> bool:
        return self.stage == BuildStage.done and not self.failures

    def fail(self, path: str, error: Exception, doc_id: str = None) -> None:
        kind = getattr(error, "kind", type(error).__name__)
        message = getattr(error, "message", str(error))
        self.failures.append(DocumentFailure(path=path, kind=kind, message=message, doc_id=doc_id))

    def failures_by_kind(self) -> dict[str, list[DocumentFailure]]:
        grouped: dict[str, list[DocumentFailure]] = {}
        for f in self.failures:
            grouped.setdefault(f.kind, []).append(f)
        return grouped
