"""Protocol definitions for Pagewright.

This module defines the interfaces (protocols) shared between components,
so that rules, body converters and output writers can be swapped or mocked
in tests without touching the pipeline.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .frontmatter import Document, Frontmatter
    from .renderer import RenderResult
    from .renderers import Heading


@runtime_checkable
class MatchRule(Protocol):
    """Predicate of a reserved-name entry.

    ``str(rule)`` must give back the rule as written in configuration.
    """

    @abstractmethod
    def matches(self, document: Document, frontmatter: Frontmatter) -> bool:
        """Check whether the rule applies to a document.

        Args:
            document: Document being resolved.
            frontmatter: Its parsed frontmatter.

        Returns:
            True if the reserved template should be used.
        """
        ...


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for converting a document body to HTML.

    Implementations handle one source type (Markdown, HTML).
    """

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file.

        Args:
            path: Path of the document.

        Returns:
            True if this renderer can process the file.
        """
        ...

    @abstractmethod
    def render(self, content: str, folder: str) -> tuple[str, list[Heading]]:
        """Render content to HTML.

        Args:
            content: Body text to render.
            folder: Folder containing the document.

        Returns:
            Tuple of (rendered HTML, list of headings for TOC).
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown', 'html')."""
        ...


@runtime_checkable
class PageWriter(Protocol):
    """Receives rendered pages; placement on storage is up to the writer."""

    @abstractmethod
    def write(self, result: RenderResult) -> Path | None:
        """Store one rendered page.

        Args:
            result: The rendered page.

        Returns:
            Where the page was written, if it was written to a file.
        """
        ...
