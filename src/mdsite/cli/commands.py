"""CLI command implementations"""

import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from mdsite.config import Settings, load_config
from mdsite.core.errors import WriteError
from mdsite.core.models import BuildReport, BuildStage
from mdsite.core.pipeline import build_site, load_content
from mdsite.crud.database import init_db, make_engine, reset_db


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def _setup_logging(verbose: bool) -> None:
    """Send mdsite log records to stderr; INFO by default, DEBUG with --verbose."""
    root = logging.getLogger("mdsite")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)


def _echo_report(report: BuildReport) -> None:
    """Print per-document failures to stderr, grouped by kind, then a summary line."""
    for kind, failures in report.failures_by_kind().items():
        typer.echo(f"{kind}:", err=True)
        for f in failures:
            typer.echo(f"  {f.path}: {f.message}", err=True)
    for path in report.skipped:
        typer.echo(f"  skipped draft: {path}", err=True)
    typer.echo(
        f"Build complete - "
        f"{len(report.succeeded)} succeeded, "
        f"{len(report.failures)} failed, "
        f"{len(report.skipped)} skipped"
    )


def _source(source: Optional[str], settings: Settings) -> Path:
    path = Path(source or settings.source_dir)
    if not path.exists():
        _fail(f"Source path not found: {path}")
    return path


def build_cmd(
    source: Annotated[Optional[str], typer.Argument(help="Content directory (default: source_dir setting)")] = None,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    templates: Annotated[Optional[str], typer.Option("--templates-dir", help="Layout directory")] = None,
    workers: Annotated[Optional[int], typer.Option("--workers", help="Render threads")] = None,
    drafts: Annotated[Optional[bool], typer.Option("--drafts/--no-drafts", help="Include draft posts")] = None,
    cache_url: Annotated[Optional[str], typer.Option("--cache-url", help="Build cache database URL")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    ):
    """Render every post under SOURCE into a static site."""
    _setup_logging(verbose)
    settings = _settings(overrides={
        "output_dir": out, "templates_dir": templates, "workers": workers,
        "include_drafts": drafts, "cache_url": cache_url,
    })
    source_dir = _source(source, settings)
    output_dir = Path(settings.output_dir)

    engine = None
    if settings.cache_url:
        try:
            engine = make_engine(settings.cache_url)
            init_db(engine)
        except Exception as e:
            _fail("Cannot open build cache", e)

    try:
        report = build_site(source_dir, output_dir, settings, engine)
    except WriteError as e:
        _fail("Write failed; build aborted", e)

    _echo_report(report)
    if report.stage == BuildStage.failed:
        _fail("No document could be built")
    if engine is not None:
        c = report.counts
        typer.echo(f"Cache - {c['created']} created, {c['updated']} updated, {c['unchanged']} unchanged")
    typer.echo(f"Wrote {len(report.written)} file(s) to {output_dir}/")
    if report.failures:
        raise typer.Exit(1)


def list_cmd(
    source: Annotated[Optional[str], typer.Argument(help="Content directory")] = None,
    drafts: Annotated[Optional[bool], typer.Option("--drafts/--no-drafts", help="Include draft posts")] = None,
    ):
    """List parsed posts newest first: date, id, title."""
    settings = _settings(overrides={"include_drafts": drafts})
    model, report = load_content(_source(source, settings), settings)
    if not len(model):
        typer.echo("No documents found.")
        raise typer.Exit(1)
    for doc in model.by_date():
        typer.echo(f"{doc.published_at.isoformat()}  {doc.id}  {doc.title}")
    for f in report.failures:
        typer.echo(f"  {f.kind}: {f.path}: {f.message}", err=True)


def tags_cmd(
    source: Annotated[Optional[str], typer.Argument(help="Content directory")] = None,
    ):
    """Print the tag index: each tag with its post ids, newest first."""
    settings = _settings()
    model, _ = load_content(_source(source, settings), settings)
    index = model.tag_index
    if not index:
        typer.echo("No tags found.")
        raise typer.Exit(1)
    for tag, ids in index.items():
        typer.echo(f"{tag} ({len(ids)}): {', '.join(ids)}")


def init_cmd(
    cache_url: Annotated[Optional[str], typer.Option("--cache-url", help="Build cache database URL")] = None,
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate the cache tables")] = False,
    ):
    """Initialize the build cache schema. Use --reset to forget previous outputs."""
    settings = _settings(overrides={"cache_url": cache_url})
    if not settings.cache_url:
        _fail("No cache_url configured (use --cache-url or MDSITE_CACHE_URL)")
    engine = make_engine(settings.cache_url)
    if reset:
        reset_db(engine)
        typer.echo("Existing cache cleared.")
    else:
        init_db(engine)
    typer.echo(f"Build cache initialized at: {settings.cache_url}")
