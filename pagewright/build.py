"""Site building for Pagewright.

This module wires configuration, content discovery, the pipeline and the
filesystem writer together. It is the plumbing behind ``pagewright build``;
the rendering logic itself lives in the pipeline.

Key items:
- FileSystemWriter: Places rendered pages at pretty URLs.
- build_site: Build a whole project and return the BuildReport.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from .config import check_output_dir, load_config
from .content import FileContentLoader
from .errors import ConfigurationError
from .pipeline import BuildReport, Pipeline
from .renderer import RenderResult
from .reporter import located
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)


class FileSystemWriter:
    """Writes each page to ``<output_dir>/<url>/index.html``.

    Attributes:
        output_dir: Base output directory.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def write(self, result: RenderResult) -> Path:
        """Write a rendered page.

        Args:
            result: The rendered page.

        Returns:
            Path of the written file.
        """
        url_path = result.url.strip("/")
        target_dir = self.output_dir / url_path if url_path else self.output_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        html_path = target_dir / "index.html"
        html_path.write_bytes(result.output)
        logger.debug("Wrote %s -> %s", result.document, html_path)
        return html_path


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    config_path: Path | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
    workers: int | None = None,
    cancel: threading.Event | None = None,
) -> BuildReport:
    """Build every document of a project.

    Configuration problems are raised before anything is rendered; document
    failures are collected in the returned report.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include drafts (``_`` files, ``draft: true``).
        config_path: Optional explicit configuration file.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Optional output directory instead of the configured one.
        workers: Optional worker count overriding the configuration.
        cancel: Optional event that stops dispatching new documents when set.

    Returns:
        BuildReport with the outcome of every document.

    Raises:
        ConfigurationError: If the configuration or template root is invalid, or
            the output directory overlaps a source directory or cannot be
            prepared.
    """
    config = load_config(project_root, config_path)
    if not config.content_dir.is_dir():
        raise ConfigurationError(
            config.config_path or project_root,
            f"content directory not found: {config.content_dir}",
            field="content_dir",
        )

    output_dir = config.output_dir
    if output_dir_override is not None:
        output_dir = output_dir_override.resolve()
        check_output_dir(config, output_dir)
    writer = FileSystemWriter(output_dir)
    pipeline = Pipeline.from_config(config, writer=writer, include_drafts=include_drafts)
    if workers is not None:
        pipeline.workers = workers

    with located(writer.output_dir, ConfigurationError):
        if clean_output:
            ensure_clean_dir(writer.output_dir)
        else:
            writer.output_dir.mkdir(parents=True, exist_ok=True)

    sources = FileContentLoader(config.content_dir).iter_files(include_drafts=include_drafts)
    return pipeline.run(sources, cancel=cancel)
