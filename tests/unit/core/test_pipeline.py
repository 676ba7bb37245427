"""Unit tests for core/pipeline.py"""

import pytest
from sqlalchemy import create_engine
from sqlmodel import SQLModel

from mdsite.config import Settings
from mdsite.core.errors import WriteError
from mdsite.core.models import BuildReport, BuildStage
from mdsite.core.pipeline import PlannedOutput, build_site, load_content, render_all, write_outputs
from mdsite.core.render import site_context
from mdsite.core.templates import TemplateResolver


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


# --- load_content ---

def test_load_content_freezes_model(content_dir, write_post, settings):
    write_post("2023-01-01-a.md")
    write_post("2023-02-01-b.md")
    model, report = load_content(content_dir, settings)
    assert model.frozen
    assert len(model) == 2
    assert report.stage == BuildStage.index_built
    assert report.failures == []


def test_load_content_records_parse_errors(content_dir, write_post, settings):
    write_post("2023-01-01-good.md")
    write_post("2023-01-02-nolayout.md", layout=None)
    (content_dir / "2023-01-03-noheader.md").write_text("# just text\n")
    model, report = load_content(content_dir, settings)
    assert [d.id for d in model] == ["good"]
    kinds = {f.path: f.kind for f in report.failures}
    assert kinds == {
        "2023-01-02-nolayout.md": "MissingField",
        "2023-01-03-noheader.md": "MalformedHeader",
    }


def test_load_content_duplicate_id_keeps_first(content_dir, write_post, settings):
    """Discovery order decides which of two same-id documents is kept."""
    write_post("a/2023-01-01-same.md", title="First")
    write_post("b/2023-05-01-same.md", title="Second")
    model, report = load_content(content_dir, settings)
    assert model.get("same").title == "First"
    [failure] = report.failures
    assert failure.kind == "DuplicateId"
    assert failure.path == "b/2023-05-01-same.md"
    assert failure.doc_id == "same"


def test_load_content_skips_drafts(content_dir, write_post, settings):
    write_post("2023-01-01-draft.md", published=False)
    model, report = load_content(content_dir, settings)
    assert len(model) == 0
    assert report.skipped == ["2023-01-01-draft.md"]


def test_load_content_includes_drafts_when_enabled(content_dir, write_post, settings):
    write_post("2023-01-01-draft.md", draft=True)
    model, _ = load_content(content_dir, settings.model_copy(update={"include_drafts": True}))
    assert "draft" in model


# --- render_all ---

def test_render_all_requires_frozen_model(settings, templates_dir):
    from mdsite.core.index import ContentModel
    with pytest.raises(RuntimeError, match="frozen"):
        render_all(ContentModel(), TemplateResolver(templates_dir), settings, {})


@pytest.mark.parametrize("workers", [1, 4])
def test_render_all_keeps_discovery_order(content_dir, write_post, settings, templates_dir, workers):
    for i in range(6):
        write_post(f"2023-01-0{i + 1}-post{i}.md", tags=["t"])
    settings = settings.model_copy(update={"workers": workers})
    model, _ = load_content(content_dir, settings)
    results = render_all(model, TemplateResolver(templates_dir), settings, site_context(model, settings))
    assert [d.id for d, _ in results] == [f"post{i}" for i in range(6)]
    assert all(err is None for _, err in results)
    assert all(d.rendered_page for d, _ in results)


# --- write_outputs ---

def test_write_outputs_without_cache(tmp_path):
    report = BuildReport()
    write_outputs([PlannedOutput("a.html", "A"), PlannedOutput("x/b.html", "B")], tmp_path, report)
    assert report.written == [tmp_path / "a.html", tmp_path / "x" / "b.html"]
    assert report.counts == {"created": 0, "updated": 0, "unchanged": 0}


def test_write_outputs_with_cache_skips_unchanged(tmp_path, engine):
    outputs = [PlannedOutput("a.html", "A", "a.md"), PlannedOutput("b.html", "B")]
    first = BuildReport()
    write_outputs(outputs, tmp_path, first, engine)
    assert first.counts == {"created": 2, "updated": 0, "unchanged": 0}

    second = BuildReport()
    write_outputs([PlannedOutput("a.html", "A", "a.md"), PlannedOutput("b.html", "B2")], tmp_path, second, engine)
    assert second.counts == {"created": 0, "updated": 1, "unchanged": 1}
    assert second.written == [tmp_path / "b.html"]
    assert (tmp_path / "b.html").read_text() == "B2"


def test_write_outputs_rewrites_deleted_file(tmp_path, engine):
    """A cached hash does not skip the write if the file is gone from disk."""
    write_outputs([PlannedOutput("a.html", "A")], tmp_path, BuildReport(), engine)
    (tmp_path / "a.html").unlink()
    report = BuildReport()
    write_outputs([PlannedOutput("a.html", "A")], tmp_path, report, engine)
    assert (tmp_path / "a.html").read_text() == "A"
    assert report.counts["updated"] == 1


# --- build_site ---

def test_build_site_writes_documents_and_listings(content_dir, write_post, settings, tmp_path):
    write_post("2023-01-01-first.md", tags=["py"])
    write_post("2023-02-01-second.md", tags=["py", "web"])
    out = tmp_path / "dist"
    report = build_site(content_dir, out, settings)

    assert report.ok
    assert report.stage == BuildStage.done
    assert report.succeeded == ["first", "second"]
    assert (out / "2023" / "01" / "01" / "first.html").exists()
    assert (out / "tags" / "py.html").exists()
    assert (out / "tags" / "web.html").exists()
    assert (out / "index.html").exists()
    assert (out / "documents.json").exists()


def test_build_site_without_listing_layouts(content_dir, write_post, settings, templates_dir, tmp_path):
    (templates_dir / "tag.html").unlink()
    (templates_dir / "index.html").unlink()
    write_post("2023-01-01-only.md", tags=["py"])
    out = tmp_path / "dist"
    build_site(content_dir, out, settings)
    assert not (out / "tags").exists()
    assert not (out / "index.html").exists()
    assert (out / "documents.json").exists()


def test_build_site_render_failure_is_isolated(content_dir, write_post, settings, tmp_path):
    write_post("2023-01-01-good.md", tags=["py"])
    write_post("2023-01-02-bad.md", layout="missing", tags=["py", "orphan"])
    out = tmp_path / "dist"
    report = build_site(content_dir, out, settings)
    assert report.stage == BuildStage.done
    assert not report.ok
    assert report.succeeded == ["good"]
    [failure] = report.failures
    assert (failure.kind, failure.path, failure.doc_id) == ("UnknownLayout", "2023-01-02-bad.md", "bad")
    assert not (out / "2023" / "01" / "02" / "bad.html").exists()


def test_build_site_listings_exclude_failed_documents(content_dir, write_post, settings, tmp_path):
    """Tag pages and index.html only link documents that were written."""
    write_post("2023-01-01-good.md", tags=["py"])
    write_post("2023-01-02-bad.md", layout="missing", tags=["py", "orphan"])
    out = tmp_path / "dist"
    build_site(content_dir, out, settings)

    tag_page = (out / "tags" / "py.html").read_text()
    assert "<li>good</li>" in tag_page
    assert "bad" not in tag_page
    index = (out / "index.html").read_text()
    assert "/2023/01/01/good.html" in index
    assert "/2023/01/02/bad.html" not in index
    assert not (out / "tags" / "orphan.html").exists()


def test_build_site_layout_expression_error_is_isolated(content_dir, write_post, settings, templates_dir, tmp_path):
    """A layout expression that fails on one document's metadata fails only that document."""
    (templates_dir / "weighted.html").write_text("<p>{{ page.weight + 1 }}</p>{{ content }}")
    write_post("2023-01-01-good.md", layout="weighted", weight=1)
    write_post("2023-01-02-bad.md", layout="weighted", weight="heavy")
    out = tmp_path / "dist"
    report = build_site(content_dir, out, settings)

    assert report.stage == BuildStage.done
    assert report.succeeded == ["good"]
    [failure] = report.failures
    assert (failure.kind, failure.path) == ("TemplateBindingFailed", "2023-01-02-bad.md")
    assert "weighted" in failure.message
    assert "<p>2</p>" in (out / "2023" / "01" / "01" / "good.html").read_text()


def test_build_site_undecodable_layout_is_isolated(content_dir, write_post, settings, templates_dir, tmp_path):
    """A layout file that is not UTF-8 fails the documents using it, not the build."""
    (templates_dir / "latin.html").write_bytes(b"<p>caf\xe9</p>{{ content }}")
    write_post("2023-01-01-good.md")
    write_post("2023-01-02-bad.md", layout="latin")
    out = tmp_path / "dist"
    report = build_site(content_dir, out, settings)

    assert report.succeeded == ["good"]
    [failure] = report.failures
    assert (failure.kind, failure.path) == ("TemplateBindingFailed", "2023-01-02-bad.md")
    assert "latin" in failure.message
    assert (out / "2023" / "01" / "01" / "good.html").exists()


def test_build_site_fails_when_nothing_succeeds(content_dir, write_post, settings, tmp_path):
    write_post("2023-01-01-bad.md", layout="missing")
    out = tmp_path / "dist"
    report = build_site(content_dir, out, settings)
    assert report.stage == BuildStage.failed
    assert not out.exists()


def test_build_site_empty_corpus_succeeds(content_dir, settings, tmp_path):
    report = build_site(content_dir, tmp_path / "dist", settings)
    assert report.ok
    assert (tmp_path / "dist" / "documents.json").read_text() == "[]\n"


def test_build_site_write_error_is_fatal(content_dir, write_post, settings, tmp_path):
    write_post("2023-01-01-post.md")
    blocker = tmp_path / "dist"
    blocker.write_text("not a directory")
    with pytest.raises(WriteError):
        build_site(content_dir, blocker, settings)


def test_build_site_listing_failure_is_reported(content_dir, write_post, settings, templates_dir, tmp_path):
    (templates_dir / "tag.html").write_text("{{ missing_variable }}")
    write_post("2023-01-01-post.md", tags=["py"])
    report = build_site(content_dir, tmp_path / "dist", settings)
    assert report.succeeded == ["post"]
    assert [(f.kind, f.path) for f in report.failures] == [("TemplateBindingFailed", "tags/py.html")]
