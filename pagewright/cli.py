"""Command-line interface for Pagewright.

This module defines the CLI commands using the Click framework.

Commands:
- build: Render every document into the output directory.
- resolve: Explain which template a document resolves to.
- new: Create a new content file with frontmatter interactively.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import click
import questionary

from . import __version__
from .errors import ConfigurationError, LocatedError
from .frontmatter import Frontmatter, PageKind, dump_frontmatter
from .reporter import format_error
from .utils import slugify, titleize

_ROOT_CHOICE = ". (root)"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _echo_error(error: LocatedError) -> None:
    """Print a located error: location line highlighted, snippet plain."""
    headline, _, snippet = format_error(error).partition("\n")
    click.echo(click.style(f"  {headline}", fg="yellow"), err=True)
    if snippet:
        click.echo(snippet, err=True)


@click.group()
@click.version_option(version=__version__, prog_name="pagewright")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Pagewright page renderer."""
    _configure_logging(verbose)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (defaults to ./pagewright.yaml)",
)
@click.option("--workers", type=click.IntRange(min=1), help="Number of render workers")
@click.option(
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory (overrides the configured one)",
)
def build(drafts: bool, config_path: Path | None, workers: int | None, output_dir: Path | None):
    """Render every document into the output directory."""
    project_root = Path.cwd()
    from .build import build_site

    try:
        report = build_site(
            project_root,
            include_drafts=drafts,
            config_path=config_path,
            output_dir_override=output_dir,
            workers=workers,
        )
    except ConfigurationError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        _echo_error(exc)
        raise SystemExit(1) from None

    click.echo(f"Rendered {len(report.results)} pages")
    if report.skipped:
        click.echo(f"Skipped {len(report.skipped)} documents")
    if report.errors:
        click.echo(
            click.style(f"{len(report.errors)} documents failed:", fg="red", bold=True),
            err=True,
        )
        for error in report.errors:
            _echo_error(error)
        raise SystemExit(1)


@cli.command()
@click.argument("document", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (defaults to ./pagewright.yaml)",
)
def resolve(document: Path, config_path: Path | None):
    """Show which template DOCUMENT resolves to, and why."""
    from .config import load_config
    from .content import load_document
    from .pipeline import Pipeline

    try:
        config = load_config(Path.cwd(), config_path)
        pipeline = Pipeline.from_config(config)
        doc = load_document(document.resolve(), config.content_dir)
        resolution = pipeline.resolve(doc, pipeline.parse(doc))
    except LocatedError as exc:
        click.echo(click.style("Resolution failed:", fg="red", bold=True), err=True)
        _echo_error(exc)
        raise SystemExit(1) from None

    click.echo(f"{doc.path} -> {resolution.template.name}")
    if resolution.rule:
        click.echo(f"  via {resolution.via} ({resolution.rule})")
    else:
        click.echo(f"  via {resolution.via}")
    if len(resolution.candidates) > 1:
        click.echo(f"  tried: {', '.join(resolution.candidates)}")


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (defaults to ./pagewright.yaml)",
)
def new(config_path: Path | None):
    """Create a new content file interactively."""
    from .config import load_config

    try:
        config = load_config(Path.cwd(), config_path)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from None
    content_dir = config.content_dir

    if not content_dir.exists():
        raise click.ClickException(
            f"No content directory found at {content_dir}. "
            "Run this command from a Pagewright project root."
        )

    folder = questionary.select(
        "Select folder:",
        choices=_get_content_folders(content_dir),
        style=_questionary_style(),
    ).ask()
    if folder is None:
        raise click.Abort()

    name = questionary.text(
        "Filename (without .md extension):",
        validate=lambda x: len(x.strip()) > 0 or "Filename cannot be empty",
        style=_questionary_style(),
    ).ask()
    if name is None:
        raise click.Abort()
    name = name.strip()

    kind = questionary.select(
        "Page kind:",
        choices=[k.value for k in PageKind],
        default=PageKind.PAGE.value if folder == _ROOT_CHOICE else PageKind.POST.value,
        style=_questionary_style(),
    ).ask()
    if kind is None:
        raise click.Abort()

    add_date = questionary.confirm(
        "Prefix with today's date? (YYYY-MM-DD-)",
        default=kind == PageKind.POST.value,
        style=_questionary_style(),
    ).ask()
    if add_date is None:
        raise click.Abort()

    today = date.today()
    filename = f"{today.isoformat()}-{name}.md" if add_date else f"{name}.md"
    target_dir = content_dir if folder == _ROOT_CHOICE else content_dir / folder
    target_path = target_dir / filename

    if target_path.exists():
        raise click.ClickException(f"File already exists: {target_path.relative_to(content_dir)}")

    slug = slugify(Path(filename).stem)
    conflicting = _find_slug(target_dir, slug)
    if conflicting is not None:
        raise click.ClickException(f"A file with slug '{slug}' already exists: {conflicting.name}")

    title = titleize(name)
    frontmatter = Frontmatter(title=title, kind=PageKind(kind), date=today)
    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(f"{dump_frontmatter(frontmatter)}\n# {title}\n\n", encoding="utf-8")
    click.echo(f"Created {target_path.relative_to(content_dir)}")


def _get_content_folders(content_dir: Path) -> list[str]:
    """List publishable folders (not starting with ``_``), root first."""
    folders = sorted(
        path.relative_to(content_dir).as_posix()
        for path in content_dir.rglob("*")
        if path.is_dir()
        and not any(
            part.startswith(("_", ".")) for part in path.relative_to(content_dir).parts
        )
    )
    return [_ROOT_CHOICE, *folders]


def _find_slug(folder: Path, slug: str) -> Path | None:
    """Return an existing Markdown file in ``folder`` with the given slug."""
    if not folder.exists():
        return None
    for path in sorted(folder.iterdir()):
        if path.is_file() and path.suffix == ".md" and slugify(path.stem) == slug:
            return path
    return None


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
