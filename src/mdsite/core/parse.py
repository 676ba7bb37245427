"""File discovery, front matter splitting, and Document construction"""

import datetime
import re
from pathlib import Path
from typing import Any

import yaml
from markdown_it import MarkdownIt

from mdsite.core.errors import MalformedHeader, MissingField, ParseError
from mdsite.core.models import Document, FrontMatter
from mdsite.core.utils.text import sha256, slugify, split_dated_stem
from mdsite.core.utils.tokens import first_paragraph_text


MD_EXTENSIONS = {'.md', '.markdown'}
OPEN_DELIMITER = '---'
CLOSE_DELIMITERS = {'---', '...'}
REQUIRED_FIELDS = ('layout', 'title')
KNOWN_FIELDS = {'layout', 'title', 'tags', 'date'}
DATE_RE = re.compile(r'^\s*(\d{4})-(\d{2})-(\d{2})')
SCALARS = (str, int, float, bool)


def make_parser(preset: str = 'gfm-like') -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset name."""
    return MarkdownIt(preset, options_update={"linkify": False})


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Return (frontmatter_dict, body) for text that opens with a '---' fenced YAML block."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != OPEN_DELIMITER:
        raise MalformedHeader("file does not start with a '---' delimiter")

    for i, line in enumerate(lines[1:], start=1):
        if line.rstrip() in CLOSE_DELIMITERS:
            header, body = ''.join(lines[1:i]), ''.join(lines[i + 1:])
            break
    else:
        raise MalformedHeader("no closing '---' delimiter")

    try:
        fm = yaml.safe_load(header) or {}
    except (yaml.YAMLError, ValueError) as e:     # ValueError: out-of-range timestamps
        raise MalformedHeader(f"invalid YAML: {e}") from e
    if not isinstance(fm, dict):
        raise MalformedHeader(f"expected a mapping, got {type(fm).__name__}")
    return {str(k): v for k, v in fm.items()}, body


def _required(fm: dict[str, Any], key: str) -> str:
    value = fm.get(key)
    if isinstance(value, (dict, list)):
        raise MalformedHeader(f"'{key}' must be a scalar, got {type(value).__name__}")
    if value is None or str(value).strip() == '':
        raise MissingField(key)
    return str(value).strip()


def _tags(value: Any) -> list[str]:
    """Normalize a tags value (list or whitespace-separated string) to unique strings in order."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split()
    elif isinstance(value, list):
        if not all(isinstance(v, SCALARS) for v in value):
            raise MalformedHeader("'tags' must be a list of strings")
        items = [str(v).strip() for v in value]
    else:
        raise MalformedHeader(f"'tags' must be a list or string, got {type(value).__name__}")
    return list(dict.fromkeys(t for t in items if t))


def _parse_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and (m := DATE_RE.match(value)):
        try:
            return datetime.date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError as e:
            raise MalformedHeader(f"invalid date '{value}': {e}") from e
    raise MalformedHeader(f"unrecognized date value {value!r}")


def resolve_date(fm: dict[str, Any], stem: str) -> datetime.date:
    """Front matter 'date' wins; otherwise the YYYY-MM-DD- filename prefix."""
    if fm.get('date') is not None:
        return _parse_date(fm['date'])
    prefix, _ = split_dated_stem(stem)
    if prefix is None:
        raise MissingField('date')
    return prefix


def doc_id_for(source_path: str) -> str:
    """Derive the stable document id from a source path: slugified stem without date prefix."""
    stem = Path(source_path).stem
    _, rest = split_dated_stem(stem)
    doc_id = slugify(rest) or slugify(stem)
    if not doc_id:
        raise MalformedHeader(f"cannot derive an id from file name '{Path(source_path).name}'")
    return doc_id


def _is_draft(fm: dict[str, Any]) -> bool:
    return fm.get('published') is False or fm.get('draft') is True


def parse_document(raw: bytes, source_path: str, parser_config: str = 'gfm-like') -> Document:
    """Build a Document from raw file bytes; raises a ParseError subclass on bad input."""
    try:
        try:
            text = raw.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise MalformedHeader(f"invalid UTF-8 encoding: {e.reason}") from e

        fm, body = split_frontmatter(text)
        layout, title = (_required(fm, key) for key in REQUIRED_FIELDS)
        tags = _tags(fm.get('tags'))
        published_at = resolve_date(fm, Path(source_path).stem)
        doc_id = doc_id_for(source_path)
    except ParseError as e:
        e.source_path = source_path
        raise

    excerpt = fm.get('excerpt')
    if not isinstance(excerpt, str):
        excerpt = first_paragraph_text(make_parser(parser_config).parse(body))

    return Document(
        id=doc_id,
        source_path=source_path,
        metadata=FrontMatter(
            layout=layout,
            title=title,
            tags=tags,
            extra={k: v for k, v in fm.items() if k not in KNOWN_FIELDS},
        ),
        body=body,
        published_at=published_at,
        content_hash=sha256(raw),
        excerpt=excerpt.strip(),
        draft=_is_draft(fm),
    )


def _is_hidden(rel: Path) -> bool:
    return any(part.startswith(('_', '.')) for part in rel.parts)


def discover_files(path: Path) -> list[Path]:
    """Return content files under path in lexicographic relative-path order, or [path] if a file.

    Files and directories whose name starts with '_' or '.' are ignored.
    """
    path = Path(path)
    if path.is_file():
        return [path] if path.suffix in MD_EXTENSIONS else []
    found = (
        p for p in path.rglob('*')
        if p.is_file() and p.suffix in MD_EXTENSIONS and not _is_hidden(p.relative_to(path))
    )
    return sorted(found, key=lambda p: p.relative_to(path).as_posix())


def relative_source(path: Path, root: Path) -> str:
    """Return path relative to the content root in POSIX form."""
    root = Path(root)
    if root.is_file():
        return path.name
    return path.relative_to(root).as_posix()


def parse_file(path: Path, root: Path, parser_config: str = 'gfm-like') -> Document:
    """Parse a single content file under root into a Document."""
    return parse_document(Path(path).read_bytes(), relative_source(Path(path), root), parser_config)
