"""Markdown-to-HTML conversion and template binding for documents and listing pages"""

from typing import Any

from mdsite.config import Settings
from mdsite.core.errors import RenderError
from mdsite.core.export import tag_page_paths
from mdsite.core.index import ContentModel
from mdsite.core.models import Document, site_url
from mdsite.core.parse import make_parser
from mdsite.core.templates import TemplateResolver


def render_markdown(markdown: str, parser_config: str = 'gfm-like') -> str:
    """Render a markdown body to HTML.

    Fenced and indented code is emitted as <pre><code> with only &, <, > and "
    entity-escaped; nothing inside a code block is interpreted as markup.
    """
    return make_parser(parser_config).render(markdown)


def page_context(doc: Document, base_url: str = "/") -> dict[str, Any]:
    """Template 'page' mapping: all front matter plus derived fields."""
    return {
        **doc.metadata.as_context(),
        "id": doc.id,
        "url": site_url(base_url, doc.url),
        "date": doc.published_at,
        "excerpt": doc.excerpt,
        "source_path": doc.source_path,
    }


def site_context(model: ContentModel, settings: Settings) -> dict[str, Any]:
    """Template 'site' mapping shared by every page; built once after the model is frozen."""
    summaries = {doc.id: doc.summary(settings.base_url) for doc in model}
    return {
        "title": settings.site_title,
        "base_url": settings.base_url,
        "tags": model.tags(),
        "tag_urls": {tag: site_url(settings.base_url, path) for tag, path in tag_page_paths(model.tags()).items()},
        "tag_index": {tag: [summaries[i] for i in ids] for tag, ids in model.tag_index.items()},
        "documents": [summaries[d.id] for d in model.by_date()],
        "recent": [summaries[d.id] for d in model.by_date()[:settings.recent_count]],
    }


def render_document(
    doc: Document,
    model: ContentModel,
    resolver: TemplateResolver,
    settings: Settings,
    site: dict[str, Any] = None,
    ) -> Document:
    """Render doc's body and bind it into its layout.

    Only doc.rendered_body and doc.rendered_page are written, and only on success.
    Raises a RenderError subclass carrying doc.source_path.
    """
    try:
        layout = resolver.resolve(doc.metadata.layout)
        body_html = render_markdown(doc.body, settings.parser_config)
        context = {
            "page": page_context(doc, settings.base_url),
            "site": site if site is not None else site_context(model, settings),
            "related": [d.summary(settings.base_url) for d in model.related(doc, settings.max_related)],
        }
        page_html = layout.render(body_html, context)
    except RenderError as e:
        e.source_path = doc.source_path
        raise

    doc.rendered_body = body_html
    doc.rendered_page = page_html
    return doc


def render_listing(
    resolver: TemplateResolver,
    layout_name: str,
    site: dict[str, Any],
    **context: Any,
    ) -> str:
    """Render a generated page (tag page, home index) that has no markdown body."""
    return resolver.resolve(layout_name).render("", {"site": site, **context})
