"""Context-aware error reporting for Pagewright.

Every failure that crosses the pipeline boundary must be a LocatedError with
a non-empty source path. This module provides the wrapping helpers used at
each stage and the one-line presentation (with optional source snippet) used
by the CLI.

Key functions:
- located: Context manager that converts any failure into a LocatedError.
- ensure_located: Convert one exception into a LocatedError.
- format_error: Render ``path:line:col: Kind: reason`` plus a snippet.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .errors import LocatedError, RenderExecutionError

logger = logging.getLogger(__name__)

SNIPPET_CONTEXT = 2


def describe(exc: BaseException) -> str:
    """Format an exception into a short, user-facing reason.

    Args:
        exc: The exception to format.

    Returns:
        ``Type: message``, or just the type name when the message is empty.
    """
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def ensure_located(
    exc: BaseException,
    source_path: str | Path,
    error_cls: type[LocatedError] = LocatedError,
    source: Path | None = None,
) -> LocatedError:
    """Return ``exc`` as a LocatedError carrying ``source_path``.

    A LocatedError is returned as-is, with the path attached if it had none;
    anything else is wrapped in ``error_cls``.
    """
    if isinstance(exc, LocatedError):
        return exc.with_path(source_path)
    return error_cls(source_path, describe(exc), source=source, original_error=exc)


@contextmanager
def located(
    source_path: str | Path,
    error_cls: type[LocatedError] = LocatedError,
    source: Path | None = None,
) -> Iterator[None]:
    """Convert any exception raised in the block into a LocatedError.

    Args:
        source_path: Document (or file) the block works on.
        error_cls: LocatedError subclass used for foreign exceptions.
        source: File on disk used for snippets.

    Raises:
        LocatedError: For any exception raised inside the block.
    """
    try:
        yield
    except LocatedError as exc:
        exc.with_path(source_path)
        raise
    except Exception as exc:
        raise ensure_located(exc, source_path, error_cls, source) from exc


def _snippet_target(error: LocatedError) -> tuple[Path | None, int | None, int | None]:
    if isinstance(error, RenderExecutionError) and error.template_line:
        return error.template_path, error.template_line, None
    return error.source, error.line, error.column


def render_snippet(
    path: Path, line: int, column: int | None = None, context: int = SNIPPET_CONTEXT
) -> str:
    """Render numbered source lines around ``line`` with a caret at ``column``.

    Args:
        path: File to read.
        line: 1-based line to highlight.
        column: Optional 1-based column to point at.
        context: Lines to show before and after.

    Returns:
        The snippet, or an empty string if the file cannot be read.
    """
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("No snippet for %s: %s", path, exc)
        return ""
    if not 1 <= line <= len(lines):
        return ""
    first = max(1, line - context)
    last = min(len(lines), line + context)
    width = len(str(last))
    out = []
    for number in range(first, last + 1):
        marker = ">" if number == line else " "
        out.append(f"  {marker} {number:>{width}} | {lines[number - 1]}")
        if number == line and column:
            out.append(f"    {' ' * width} | {' ' * (column - 1)}^")
    return "\n".join(out)


def format_error(error: LocatedError, snippet: bool = True) -> str:
    """Render a located error for a human.

    The first line is always ``path[:line[:col]]: Kind: reason``; a snippet
    of the offending file follows when requested and available.

    Args:
        error: The error to render.
        snippet: Whether to append surrounding source lines.

    Returns:
        The formatted error.
    """
    headline = f"{error.location}: {error.kind}: {error.message}"
    if not snippet:
        return headline
    path, line, column = _snippet_target(error)
    if path is None or line is None:
        return headline
    excerpt = render_snippet(path, line, column)
    if isinstance(error, RenderExecutionError) and excerpt:
        excerpt = f"  in {error.template}:\n{excerpt}"
    return f"{headline}\n{excerpt}" if excerpt else headline
