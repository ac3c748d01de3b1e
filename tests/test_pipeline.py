import threading
import time
from pathlib import Path

import pytest

from pagewright.errors import (
    ConfigurationError,
    DocumentReadError,
    FrontmatterTypeError,
    LocatedError,
    OutputError,
    RenderExecutionError,
    RenderTimeout,
    TemplateNotFound,
)
from pagewright.frontmatter import Document
from pagewright.pipeline import PageOutcome, PageState, Pipeline
from pagewright.resolver import PathEqualsRule, ReservedName, ReservedNameSet
from pagewright.templates import TemplateSet


def create_project(tmp_path: Path) -> tuple[TemplateSet, Path]:
    pages = tmp_path / "templates" / "pages"
    pages.mkdir(parents=True)
    (pages / "_index.html").write_text("home: {{ content }}", encoding="utf-8")
    (pages / "blog-post.html").write_text("post: {{ page.title }}", encoding="utf-8")
    (pages / "default.html").write_text("default: {{ page.title }}", encoding="utf-8")
    (pages / "broken.html").write_text("{{ nope }}", encoding="utf-8")

    content = tmp_path / "content"
    (content / "blog").mkdir(parents=True)
    (content / "index.md").write_text("# Home\n", encoding="utf-8")
    (content / "about.md").write_text("---\ntitle: About\n---\n", encoding="utf-8")
    (content / "blog" / "post1.md").write_text("---\ntitle: First\n---\n", encoding="utf-8")
    return TemplateSet.scan(pages), content


class MemoryWriter:
    def __init__(self):
        self.written = {}

    def write(self, result):
        self.written[result.document] = result.output
        return None


def test_pipeline_renders_every_document(tmp_path):
    templates, content = create_project(tmp_path)
    writer = MemoryWriter()
    pipeline = Pipeline(templates, content_dir=content, writer=writer, workers=2)
    report = pipeline.run(sorted(content.rglob("*.md")))

    assert report.ok
    assert writer.written == {
        "about.md": b"default: About",
        "blog/post1.md": b"post: First",
        "index.md": b'home: <h1 id="home">Home</h1>\n',
    }
    assert [o.document for o in report.outcomes] == ["about.md", "blog/post1.md", "index.md"]
    assert all(o.state is PageState.EMITTED for o in report.outcomes)


def test_failures_do_not_stop_other_documents(tmp_path):
    templates, content = create_project(tmp_path)
    (content / "blog" / "bad-kind.md").write_text(
        "---\nkind: unknown-kind\n---\n", encoding="utf-8"
    )
    (content / "missing.md").write_text("---\ntemplate: gone.html\n---\n", encoding="utf-8")
    (content / "render.md").write_text("---\ntemplate: broken.html\n---\n", encoding="utf-8")
    (content / "binary.md").write_bytes(b"\xff\xfe\x00bad")

    writer = MemoryWriter()
    pipeline = Pipeline(templates, content_dir=content, writer=writer, workers=3)
    report = pipeline.run(sorted(content.rglob("*.md")))

    assert not report.ok
    assert set(writer.written) == {"about.md", "blog/post1.md", "index.md"}
    errors = {error.source_path: error for error in report.errors}
    assert isinstance(errors["blog/bad-kind.md"], FrontmatterTypeError)
    assert isinstance(errors["missing.md"], TemplateNotFound)
    assert isinstance(errors["render.md"], RenderExecutionError)
    assert isinstance(errors["binary.md"], DocumentReadError)
    assert all(error.source_path for error in report.errors)

    failed = {o.document: o for o in report.outcomes if o.state is PageState.FAILED}
    assert failed["blog/bad-kind.md"].reached is None
    assert failed["missing.md"].reached is PageState.PARSED
    assert failed["render.md"].reached is PageState.RESOLVED


def test_render_matches_run_output(tmp_path):
    templates, content = create_project(tmp_path)
    pipeline = Pipeline(templates, content_dir=content)
    document = Document("blog/post1.md", {"title": "First"}, "")
    assert pipeline.render(document).output == b"post: First"


def test_drafts_are_skipped(tmp_path):
    templates, content = create_project(tmp_path)
    (content / "wip.md").write_text("---\ndraft: true\n---\n", encoding="utf-8")
    writer = MemoryWriter()

    report = Pipeline(templates, content_dir=content, writer=writer).run([content / "wip.md"])
    assert report.skipped == ["wip.md"]
    assert writer.written == {}

    report = Pipeline(
        templates, content_dir=content, writer=writer, include_drafts=True
    ).run([content / "wip.md"])
    assert "wip.md" in writer.written
    assert report.skipped == []


def test_cancel_stops_dispatch(tmp_path):
    templates, content = create_project(tmp_path)
    cancel = threading.Event()

    class CancellingWriter(MemoryWriter):
        def write(self, result):
            cancel.set()
            return super().write(result)

    writer = CancellingWriter()
    pipeline = Pipeline(templates, content_dir=content, writer=writer, workers=1)
    report = pipeline.run(sorted(content.rglob("*.md")), cancel=cancel)

    assert report.cancelled
    assert not report.ok
    assert len(writer.written) == 1
    assert len(report.skipped) == 2
    assert report.errors == []


def test_cancel_before_start_dispatches_nothing(tmp_path):
    templates, content = create_project(tmp_path)
    cancel = threading.Event()
    cancel.set()
    report = Pipeline(templates, content_dir=content).run(
        sorted(content.rglob("*.md")), cancel=cancel
    )
    assert report.outcomes == []
    assert len(report.skipped) == 3


def test_slow_document_times_out(tmp_path):
    templates, content = create_project(tmp_path)
    release = threading.Event()

    class SlowWriter(MemoryWriter):
        def write(self, result):
            if result.document == "about.md":
                release.wait(5)
            return super().write(result)

    writer = SlowWriter()
    pipeline = Pipeline(templates, content_dir=content, writer=writer, workers=2, timeout=0.2)
    started = time.monotonic()
    report = pipeline.run(sorted(content.rglob("*.md")))
    release.set()

    assert time.monotonic() - started < 4
    errors = {error.source_path: error for error in report.errors}
    assert isinstance(errors["about.md"], RenderTimeout)
    assert "blog/post1.md" in writer.written
    assert "index.md" in writer.written


def test_missing_reserved_template_is_configuration_error(tmp_path):
    templates, _ = create_project(tmp_path)
    reserved = ReservedNameSet([ReservedName(PathEqualsRule("about.md"), "_about.html")])
    with pytest.raises(ConfigurationError):
        Pipeline(templates, reserved)


def test_default_reserved_table_needs_no_index_template(tmp_path):
    pages = tmp_path / "pages"
    pages.mkdir()
    (pages / "default.html").write_text("d", encoding="utf-8")
    pipeline = Pipeline(TemplateSet.scan(pages), content_dir=tmp_path)
    assert pipeline.render(Document("index.md", {}, "")).output == b"d"


def test_outcome_transitions_are_ordered():
    outcome = PageOutcome("a.md")
    outcome.advance(PageState.PARSED)
    with pytest.raises(RuntimeError):
        outcome.advance(PageState.RENDERED)
    outcome.advance(PageState.RESOLVED)
    outcome.fail(LocatedError("a.md", "x"))
    assert outcome.state is PageState.FAILED
    assert outcome.reached is PageState.RESOLVED
    with pytest.raises(RuntimeError):
        outcome.fail(LocatedError("a.md", "again"))


def test_timed_out_document_frees_its_worker(tmp_path):
    templates, content = create_project(tmp_path)
    release = threading.Event()

    class StuckWriter(MemoryWriter):
        def write(self, result):
            if result.document == "about.md":
                release.wait(5)
                return None
            return super().write(result)

    writer = StuckWriter()
    pipeline = Pipeline(templates, content_dir=content, writer=writer, workers=1, timeout=0.2)
    sources = [content / "about.md", content / "blog" / "post1.md", content / "index.md"]
    started = time.monotonic()
    try:
        report = pipeline.run(sources)
        elapsed = time.monotonic() - started
    finally:
        release.set()

    assert elapsed < 2
    errors = {error.source_path: error for error in report.errors}
    assert list(errors) == ["about.md"]
    assert isinstance(errors["about.md"], RenderTimeout)
    assert set(writer.written) == {"blog/post1.md", "index.md"}


def test_documents_sharing_a_url_fail_after_the_first(tmp_path):
    templates, content = create_project(tmp_path)
    (content / "about.html").write_text("<p>about</p>", encoding="utf-8")
    (content / "blog.md").write_text("# Blog\n", encoding="utf-8")
    (content / "blog" / "index.md").write_text("# Section\n", encoding="utf-8")

    writer = MemoryWriter()
    pipeline = Pipeline(templates, content_dir=content, writer=writer, workers=2)
    report = pipeline.run(
        [
            content / "about.html",
            content / "about.md",
            content / "blog" / "index.md",
            content / "blog.md",
        ]
    )

    assert not report.ok
    assert set(writer.written) == {"about.html", "blog/index.md"}
    errors = {error.source_path: error for error in report.errors}
    assert set(errors) == {"about.md", "blog.md"}
    assert isinstance(errors["about.md"], OutputError)
    assert "/about/" in errors["about.md"].message
    assert "about.html" in errors["about.md"].message
    assert "blog/index.md" in errors["blog.md"].message
    assert [o.document for o in report.outcomes] == [
        "about.html",
        "about.md",
        "blog/index.md",
        "blog.md",
    ]
