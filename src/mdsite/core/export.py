"""Write stage: output paths, atomic file writes, and the documents.json manifest"""

import json
import os
import tempfile
from pathlib import Path

from mdsite.core.errors import WriteError
from mdsite.core.models import Document
from mdsite.core.utils.text import unique_slugs


MANIFEST_FILE = "documents.json"
INDEX_FILE = "index.html"
TAGS_DIR = "tags"


def tag_page_paths(tags: list[str]) -> dict[str, str]:
    """Map each tag to a distinct output path under tags/ (colliding slugs get -2, -3 ...)."""
    return {tag: f"{TAGS_DIR}/{slug}.html" for tag, slug in unique_slugs(tags, fallback="tag").items()}


def build_manifest(docs: list[Document], base_url: str = "/") -> list[dict]:
    """Return the JSON-ready manifest entries for rendered docs, in the order given."""
    return [
        {
            "id": s.id,
            "title": s.title,
            "url": s.url,
            "date": s.date.isoformat(),
            "tags": list(s.tags),
            "excerpt": s.excerpt,
            "source_path": s.source_path,
        }
        for s in (doc.summary(base_url) for doc in docs)
    ]


def manifest_json(docs: list[Document], base_url: str = "/") -> str:
    return json.dumps(build_manifest(docs, base_url), indent=2, ensure_ascii=False) + "\n"


def write_text(output_dir: Path, rel_path: str, text: str) -> Path:
    """Write text to output_dir/rel_path via a temp file + rename.

    Any OSError is raised as WriteError, which is fatal to the build.
    """
    dest = Path(output_dir) / rel_path
    tmp_name = None
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, dest)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise WriteError(f"cannot write {dest}: {e}") from e
    return dest
