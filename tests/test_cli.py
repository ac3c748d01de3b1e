from datetime import date
from pathlib import Path

from click.testing import CliRunner

from pagewright import __version__
from pagewright.cli import _ROOT_CHOICE, _find_slug, _get_content_folders, cli
from pagewright.pipeline import BuildReport


def create_site(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    pages = root / "templates" / "pages"
    pages.mkdir(parents=True)
    (pages / "_index.html").write_text("{{ content }}", encoding="utf-8")
    (pages / "blog-post.html").write_text("{{ page.title }}", encoding="utf-8")
    (pages / "default.html").write_text("{{ content }}", encoding="utf-8")
    content = root / "content"
    (content / "blog").mkdir(parents=True)
    (content / "index.md").write_text("# Home\n", encoding="utf-8")
    (content / "blog" / "post1.md").write_text("---\ntitle: First\n---\n", encoding="utf-8")
    return root


class Answer:
    def __init__(self, value):
        self.value = value

    def ask(self):
        return self.value


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_build_command(tmp_path, monkeypatch):
    root = create_site(tmp_path)
    monkeypatch.chdir(root)
    result = CliRunner().invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Rendered 2 pages" in result.output
    assert (root / "output" / "blog" / "post1" / "index.html").read_text(encoding="utf-8") == (
        "First"
    )


def test_build_command_reports_errors(tmp_path, monkeypatch):
    root = create_site(tmp_path)
    (root / "content" / "blog" / "post2.md").write_text(
        "---\nkind: unknown-kind\n---\n", encoding="utf-8"
    )
    monkeypatch.chdir(root)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "1 documents failed" in result.output
    assert "blog/post2.md:2:7: Frontmatter type error" in result.output
    assert "> 2 | kind: unknown-kind" in result.output


def test_build_command_configuration_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "content directory not found" in result.output


def test_build_command_refuses_output_over_content(tmp_path, monkeypatch):
    root = create_site(tmp_path)
    monkeypatch.chdir(root)
    result = CliRunner().invoke(cli, ["build", "--output", "content"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "overlaps content_dir" in result.output
    assert (root / "content" / "index.md").exists()


def test_build_command_passes_options(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    called = {}

    def fake_build_site(root, **kwargs):
        called.update(kwargs, root=root)
        return BuildReport()

    monkeypatch.setattr("pagewright.build.build_site", fake_build_site)
    result = CliRunner().invoke(
        cli, ["build", "--drafts", "--workers", "3", "--output", "public"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert called["include_drafts"] is True
    assert called["workers"] == 3
    assert called["output_dir_override"] == Path("public")
    assert called["root"] == tmp_path


def test_resolve_command(tmp_path, monkeypatch):
    root = create_site(tmp_path)
    monkeypatch.chdir(root)
    runner = CliRunner()

    result = runner.invoke(cli, ["resolve", "content/blog/post1.md"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "blog/post1.md -> blog-post.html" in result.output
    assert "via convention" in result.output
    assert "tried: blog/post1.html, blog-post.html" in result.output

    result = runner.invoke(cli, ["resolve", "content/index.md"], catch_exceptions=False)
    assert "index.md -> _index.html" in result.output
    assert "via reserved (is-root-index)" in result.output


def test_resolve_command_failure(tmp_path, monkeypatch):
    root = create_site(tmp_path)
    (root / "content" / "odd.md").write_text("---\ntemplate: nope.html\n---\n", encoding="utf-8")
    monkeypatch.chdir(root)
    result = CliRunner().invoke(cli, ["resolve", "content/odd.md"])
    assert result.exit_code == 1
    assert "odd.md:2:11: Template not found" in result.output


def test_content_helpers(tmp_path):
    content = tmp_path / "content"
    (content / "blog" / "2024").mkdir(parents=True)
    (content / "_partials").mkdir()
    (content / "blog" / "hello-world.md").write_text("x", encoding="utf-8")
    assert _get_content_folders(content) == [_ROOT_CHOICE, "blog", "blog/2024"]
    assert _find_slug(content / "blog", "hello-world").name == "hello-world.md"
    assert _find_slug(content / "blog", "other") is None
    assert _find_slug(content / "missing", "x") is None


def test_new_command_creates_file(tmp_path, monkeypatch):
    root = create_site(tmp_path)
    monkeypatch.chdir(root)
    answers = iter(["blog", "My Trip", "post", False])

    def next_answer(*args, **kwargs):
        return Answer(next(answers))

    monkeypatch.setattr("pagewright.cli.questionary.select", next_answer)
    monkeypatch.setattr("pagewright.cli.questionary.text", next_answer)
    monkeypatch.setattr("pagewright.cli.questionary.confirm", next_answer)

    result = CliRunner().invoke(cli, ["new"], catch_exceptions=False)
    assert result.exit_code == 0
    created = root / "content" / "blog" / "My Trip.md"
    assert created.exists()
    text = created.read_text(encoding="utf-8")
    assert text.startswith("---\ntitle: My Trip\nkind: post\n")
    assert f"date: {date.today().isoformat()}" in text
    assert "# My Trip" in text


def test_new_command_duplicate(tmp_path, monkeypatch):
    root = create_site(tmp_path)
    monkeypatch.chdir(root)
    answers = iter(["blog", "post1", "post", False])

    def next_answer(*args, **kwargs):
        return Answer(next(answers))

    monkeypatch.setattr("pagewright.cli.questionary.select", next_answer)
    monkeypatch.setattr("pagewright.cli.questionary.text", next_answer)
    monkeypatch.setattr("pagewright.cli.questionary.confirm", next_answer)

    result = CliRunner().invoke(cli, ["new"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_new_command_without_content_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["new"])
    assert result.exit_code != 0
    assert "No content directory" in result.output


def test_module_main_entrypoint():
    from pagewright.__main__ import main

    assert callable(main)
