"""Content discovery and loading for Pagewright.

This module walks the content directory and turns each file into a Document.
It is thin plumbing around the frontmatter parser: file discovery, decoding,
and URL derivation for the writer.

Key classes:
- FileContentLoader: Discovers content files under the content root.
- UrlDeriver: Derives the pretty URL a document is published at.

Key functions:
- load_document: Read one file into a Document.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from .errors import DocumentReadError
from .frontmatter import Document, read_document
from .utils import is_content, slugify

logger = logging.getLogger(__name__)


class FileContentLoader:
    """Loads content files from a directory.

    Directories starting with ``_`` are internal and never published; files
    starting with ``_`` are drafts and are skipped unless requested.

    Attributes:
        content_dir: Directory containing content documents.
    """

    def __init__(self, content_dir: Path):
        self.content_dir = content_dir

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """List all content files, sorted by path.

        Args:
            include_drafts: Whether to include draft files.

        Returns:
            List of paths to content files.
        """
        files: list[Path] = []
        for path in sorted(self.content_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.content_dir)
            parts = rel.parts
            if any(part.startswith(("_", ".")) for part in parts[:-1]):
                continue
            if rel.name.startswith(".") or (rel.name.startswith("_") and not include_drafts):
                continue
            if is_content(path):
                files.append(path)
        logger.debug("Discovered %d documents under %s", len(files), self.content_dir)
        return files


def document_id(path: Path, content_dir: Path) -> str:
    """Return the stable identifier of a content file: its POSIX relative path."""
    try:
        return path.relative_to(content_dir).as_posix()
    except ValueError:
        return path.as_posix()


def load_document(path: Path, content_dir: Path) -> Document:
    """Read a content file into a Document.

    Args:
        path: Absolute path of the content file.
        content_dir: Content root the document identifier is relative to.

    Returns:
        The parsed Document.

    Raises:
        DocumentReadError: If the file cannot be read as UTF-8.
        FrontmatterSyntaxError: If the frontmatter block is malformed.
    """
    doc_id = document_id(path, content_dir)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise DocumentReadError(
            doc_id, f"not valid UTF-8 (byte {exc.start})", source=path, original_error=exc
        ) from exc
    except OSError as exc:
        raise DocumentReadError(
            doc_id, exc.strerror or str(exc), source=path, original_error=exc
        ) from exc
    return read_document(text, doc_id, source=path)


class UrlDeriver:
    """Derives URLs for documents.

    ``index.md`` maps to its folder, anything else to ``/<folder>/<slug>/``.
    """

    def derive(self, doc_path: str) -> str:
        """Derive the URL for a document.

        Args:
            doc_path: Document identifier relative to the content root.

        Returns:
            URL path for the page, always with leading and trailing slashes.
        """
        rel = PurePosixPath(doc_path)
        segments = [p for p in rel.parent.parts if p not in ("", ".")]
        slug = slugify(rel.stem)
        url_parts = segments if slug == "index" else segments + [slug]
        path = "/".join(url_parts)
        return f"/{path}/" if path else "/"
