"""Site build orchestration: discover -> parse -> freeze -> render -> write"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from mdsite.config import Settings
from mdsite.core.errors import ParseError, RenderError
from mdsite.core.export import INDEX_FILE, MANIFEST_FILE, manifest_json, tag_page_paths, write_text
from mdsite.core.index import ContentModel
from mdsite.core.models import BuildReport, BuildStage, Document
from mdsite.core.parse import discover_files, parse_file, relative_source
from mdsite.core.render import render_document, render_listing, site_context
from mdsite.core.templates import TemplateResolver
from mdsite.core.utils.text import sha256
from mdsite.crud.outputs import is_unchanged, record_output


logger = logging.getLogger(__name__)


@dataclass
class PlannedOutput:
    """One file the Write stage will produce."""
    path:           str                 # relative to the output directory
    text:           str
    source_path:    Optional[str] = None


def load_content(source_dir: Path, settings: Settings) -> tuple[ContentModel, BuildReport]:
    """Run Discover and ParseAll, then freeze the model (the build barrier).

    Parse failures and duplicate ids are recorded in the report; they never stop the build.
    """
    report = BuildReport(stage=BuildStage.discover)
    source_dir = Path(source_dir)
    files = discover_files(source_dir)
    logger.info("discovered %d content file(s) under %s", len(files), source_dir)

    report.stage = BuildStage.parse_all
    model = ContentModel()
    for path in files:
        rel = relative_source(path, source_dir)
        try:
            doc = parse_file(path, source_dir, settings.parser_config)
            if doc.draft and not settings.include_drafts:
                logger.info("skipping draft %s", rel)
                report.skipped.append(rel)
                continue
            model.add(doc)
        except ParseError as e:
            logger.warning("%s: %s", rel, e.message)
            report.fail(rel, e, doc_id=getattr(e, "doc_id", None))
        except OSError as e:
            logger.warning("%s: %s", rel, e)
            report.fail(rel, e)

    model.freeze()
    report.stage = BuildStage.index_built
    return model, report


def _render_one(
    doc: Document,
    model: ContentModel,
    resolver: TemplateResolver,
    settings: Settings,
    site: dict[str, Any],
    ) -> tuple[Document, Optional[RenderError]]:
    try:
        render_document(doc, model, resolver, settings, site)
    except RenderError as e:
        return doc, e
    return doc, None


def render_all(
    model: ContentModel,
    resolver: TemplateResolver,
    settings: Settings,
    site: dict[str, Any],
    ) -> list[tuple[Document, Optional[RenderError]]]:
    """Render every document against the frozen model; results keep discovery order."""
    if not model.frozen:
        raise RuntimeError("render_all requires a frozen content model")
    docs = list(model)
    if settings.workers == 1 or len(docs) < 2:
        return [_render_one(d, model, resolver, settings, site) for d in docs]
    with ThreadPoolExecutor(max_workers=settings.workers) as pool:
        return list(pool.map(lambda d: _render_one(d, model, resolver, settings, site), docs))


def _listing_outputs(
    model: ContentModel,
    resolver: TemplateResolver,
    settings: Settings,
    site: dict[str, Any],
    report: BuildReport,
    rendered_ids: set[str],
    ) -> list[PlannedOutput]:
    """Tag pages and the home index, each only when its layout exists.

    Only documents in rendered_ids are listed; a tag with none of them gets no page.
    """
    outputs = []
    base = settings.base_url

    if resolver.has_layout(settings.tag_layout):
        for tag, path in tag_page_paths(model.tags()).items():
            docs = [d.summary(base) for d in model.by_tag(tag) if d.id in rendered_ids]
            if not docs:
                continue
            try:
                text = render_listing(resolver, settings.tag_layout, site, tag=tag, documents=docs)
            except RenderError as e:
                logger.warning("tag page %s: %s", tag, e.message)
                report.fail(path, e)
                continue
            outputs.append(PlannedOutput(path, text))

    if resolver.has_layout(settings.index_layout):
        try:
            text = render_listing(
                resolver, settings.index_layout, site,
                documents=[d.summary(base) for d in model.by_date() if d.id in rendered_ids],
            )
            outputs.append(PlannedOutput(INDEX_FILE, text))
        except RenderError as e:
            logger.warning("index page: %s", e.message)
            report.fail(INDEX_FILE, e)

    return outputs


def write_outputs(
    outputs: list[PlannedOutput],
    output_dir: Path,
    report: BuildReport,
    engine: Engine = None,
    ) -> None:
    """Write each output once, in order. With a cache engine, identical outputs are skipped.

    WriteError propagates: a failed write aborts the build.
    """
    if engine is None:
        for out in outputs:
            report.written.append(write_text(output_dir, out.path, out.text))
        return

    with Session(engine) as session:
        for out in outputs:
            digest = sha256(out.text)
            if is_unchanged(session, out.path, digest) and (output_dir / out.path).is_file():
                report.counts["unchanged"] += 1
                continue
            report.written.append(write_text(output_dir, out.path, out.text))
            status = record_output(session, out.path, digest, out.source_path)
            report.counts["updated" if status == "unchanged" else status] += 1
        session.commit()


def build_site(
    source_dir: Path,
    output_dir: Path,
    settings: Settings,
    engine: Engine = None,
    ) -> BuildReport:
    """Run the full build and return its report.

    Parse and render failures are per document. The build ends in BuildStage.failed
    only when documents failed and none succeeded; WriteError is raised to the caller.
    """
    model, report = load_content(Path(source_dir), settings)
    resolver = TemplateResolver(Path(settings.templates_dir))
    site = site_context(model, settings)

    report.stage = BuildStage.render_all
    rendered: list[Document] = []
    for doc, error in render_all(model, resolver, settings, site):
        if error is None:
            rendered.append(doc)
            report.succeeded.append(doc.id)
        else:
            logger.warning("%s: %s", doc.source_path, error.message)
            report.fail(doc.source_path, error, doc_id=doc.id)

    if not rendered and report.failures:
        logger.error("build failed: no document rendered successfully")
        report.stage = BuildStage.failed
        return report

    rendered_ids = set(report.succeeded)
    outputs = [PlannedOutput(doc.url, doc.rendered_page, doc.source_path) for doc in rendered]
    outputs += _listing_outputs(model, resolver, settings, site, report, rendered_ids)
    outputs.append(PlannedOutput(
        MANIFEST_FILE,
        manifest_json([d for d in model.by_date() if d.id in rendered_ids], settings.base_url),
    ))

    report.stage = BuildStage.write
    write_outputs(outputs, Path(output_dir), report, engine)
    report.stage = BuildStage.done
    logger.info(
        "build complete: %d succeeded, %d failed, %d skipped",
        len(report.succeeded), len(report.failures), len(report.skipped),
    )
    return report
