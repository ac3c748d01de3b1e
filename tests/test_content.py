from pathlib import Path

import pytest

from pagewright.content import FileContentLoader, UrlDeriver, document_id, load_document
from pagewright.errors import DocumentReadError


def create_content(tmp_path: Path) -> Path:
    content = tmp_path / "content"
    (content / "posts").mkdir(parents=True)
    (content / "_hidden").mkdir()
    (content / ".git").mkdir()
    (content / "index.md").write_text("# Home", encoding="utf-8")
    (content / "page.html").write_text("<p>hi</p>", encoding="utf-8")
    (content / "posts" / "2024-01-15-my-post.md").write_text("# Post", encoding="utf-8")
    (content / "posts" / "_draft.md").write_text("# Draft", encoding="utf-8")
    (content / "_hidden" / "secret.md").write_text("# Secret", encoding="utf-8")
    (content / ".git" / "config.md").write_text("x", encoding="utf-8")
    (content / "notes.txt").write_text("ignore", encoding="utf-8")
    return content


def test_iter_files(tmp_path):
    content = create_content(tmp_path)
    loader = FileContentLoader(content)
    names = [document_id(p, content) for p in loader.iter_files()]
    assert names == ["index.md", "page.html", "posts/2024-01-15-my-post.md"]

    with_drafts = [document_id(p, content) for p in loader.iter_files(include_drafts=True)]
    assert "posts/_draft.md" in with_drafts
    assert "_hidden/secret.md" not in with_drafts


def test_load_document(tmp_path):
    content = create_content(tmp_path)
    source = content / "posts" / "2024-01-15-my-post.md"
    document = load_document(source, content)
    assert document.path == "posts/2024-01-15-my-post.md"
    assert document.body == "# Post"
    assert document.source == source


def test_load_document_errors(tmp_path):
    content = create_content(tmp_path)
    bad = content / "bad.md"
    bad.write_bytes(b"\xff\xfeoops")
    with pytest.raises(DocumentReadError) as excinfo:
        load_document(bad, content)
    assert excinfo.value.source_path == "bad.md"
    assert "UTF-8" in excinfo.value.message

    with pytest.raises(DocumentReadError) as excinfo:
        load_document(content / "gone.md", content)
    assert excinfo.value.source_path == "gone.md"


def test_url_deriver():
    deriver = UrlDeriver()
    assert deriver.derive("index.md") == "/"
    assert deriver.derive("posts/index.md") == "/posts/"
    assert deriver.derive("about.md") == "/about/"
    assert deriver.derive("posts/2024-01-15-My Post.md") == "/posts/my-post/"
