"""Layout resolution: named Jinja2 layouts with one optional level of wrapping"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template, select_autoescape
from jinja2.exceptions import TemplateError, TemplateSyntaxError, UndefinedError
from markupsafe import Markup

from mdsite.core.errors import LayoutNestingTooDeep, MalformedHeader, TemplateBindingFailed, UnknownLayout
from mdsite.core.parse import split_frontmatter


logger = logging.getLogger(__name__)

LAYOUT_SUFFIX = '.html'


def _split_layout(text: str) -> tuple[dict[str, Any], str]:
    """Layout front matter is optional; return ({}, text) when absent."""
    if not text.startswith('---'):
        return {}, text
    return split_frontmatter(text)


@dataclass(frozen=True)
class BoundLayout:
    """A compiled layout and, at most, the single parent layout that wraps it."""
    name:       str
    template:   Template
    metadata:   dict[str, Any] = field(default_factory=dict)
    parent:     Optional["BoundLayout"] = None

    def _render_one(self, content: str, context: dict[str, Any]) -> str:
        return self.template.render({**context, "content": Markup(content), "layout": self.metadata})

    def render(self, content: str, context: dict[str, Any]) -> str:
        """Bind context into this layout (and its parent); content is trusted HTML."""
        try:
            html = self._render_one(content, context)
            if self.parent is not None:
                html = self.parent._render_one(html, context)
        except UndefinedError as e:
            raise TemplateBindingFailed(f"layout '{self.name}': {e.message}") from e
        except (TemplateError, TypeError, ValueError, ArithmeticError, LookupError) as e:
            # expressions evaluated against one document's metadata
            raise TemplateBindingFailed(f"layout '{self.name}': {e}") from e
        return html


class TemplateResolver:
    """Map layout names to BoundLayouts from a templates directory.

    '{% include %}' resolves against the same directory. Resolved layouts are
    cached; the cache is shared by render threads.
    """

    def __init__(self, templates_dir: Path):
        self.templates_dir = Path(templates_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(['html', 'xml'], default_for_string=True),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self._cache: dict[str, BoundLayout] = {}
        self._lock = threading.Lock()

    def layout_path(self, name: str) -> Path | None:
        """Return the file for a layout name, or None for names that cannot be a layout."""
        if not name or name.startswith('.') or '/' in name or '\\' in name:
            return None
        return self.templates_dir / f"{name}{LAYOUT_SUFFIX}"

    def has_layout(self, name: str) -> bool:
        path = self.layout_path(name)
        return path is not None and path.is_file()

    def resolve(self, name: str) -> BoundLayout:
        with self._lock:
            if name not in self._cache:
                self._cache[name] = self._load([name])
            return self._cache[name]

    def _load(self, chain: list[str]) -> BoundLayout:
        name = chain[-1]
        if not self.has_layout(name):
            raise UnknownLayout(name)
        try:
            text = self.layout_path(name).read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateBindingFailed(f"layout '{name}': cannot read: {e}") from e
        try:
            meta, source = _split_layout(text)
        except MalformedHeader as e:
            raise TemplateBindingFailed(f"layout '{name}': {e.message}") from e
        try:
            template = self.env.from_string(source)
        except TemplateSyntaxError as e:
            raise TemplateBindingFailed(f"layout '{name}' line {e.lineno}: {e.message}") from e

        parent = None
        parent_name = meta.get('layout')
        if parent_name:
            if len(chain) > 1:
                raise LayoutNestingTooDeep(chain + [str(parent_name)])
            parent = self._load(chain + [str(parent_name)])
        logger.debug("resolved layout %s", ' -> '.join(chain))
        return BoundLayout(name=name, template=template, metadata=meta, parent=parent)
