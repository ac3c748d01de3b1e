"""Error hierarchy for Pagewright.

Every failure that leaves the pipeline is a LocatedError: it always names the
source file responsible and, where known, the line and column inside it.

Hierarchy:
- LocatedError
  - ConfigurationError: build-fatal, raised before any document is processed.
  - DocumentReadError: the source file could not be read or decoded.
  - FrontmatterError
    - FrontmatterSyntaxError: the block is not a well-formed YAML mapping.
    - FrontmatterTypeError: a recognized field has the wrong shape.
  - ResolutionError
    - TemplateNotFound: no template matched the document.
    - AmbiguousTemplate: two reserved entries matched the same document.
  - RenderExecutionError: the template failed while executing.
    - RenderTimeout: rendering exceeded the per-document time limit.
  - OutputError: the writer could not place the rendered page.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class LocatedError(Exception):
    """Error carrying the source file (and position) responsible for it.

    Attributes:
        source_path: Path of the document, template root or config file at fault.
        message: Human-readable reason, without location.
        line: 1-based line within source_path, if known.
        column: 1-based column within source_path, if known.
        field: Name of the offending frontmatter or config field, if any.
        template: Name of the template involved, if any.
        source: Absolute file path used to read a snippet, if different
            from source_path.
        original_error: The exception that was caught, if any.
    """

    kind = "Error"

    def __init__(
        self,
        source_path: str | Path,
        message: str,
        *,
        line: int | None = None,
        column: int | None = None,
        field: str | None = None,
        template: str | None = None,
        source: Path | None = None,
        original_error: BaseException | None = None,
    ):
        self.source_path = str(source_path)
        self.message = message
        self.line = line
        self.column = column
        self.field = field
        self.template = template
        self.source = source
        self.original_error = original_error
        super().__init__(f"{self.location}: {message}")

    @property
    def location(self) -> str:
        """Return ``path[:line[:column]]``."""
        location = self.source_path
        if self.line is not None:
            location += f":{self.line}"
            if self.column is not None:
                location += f":{self.column}"
        return location

    def with_path(self, source_path: str | Path) -> LocatedError:
        """Attach a source path if this error does not carry one yet."""
        if not self.source_path:
            self.source_path = str(source_path)
            self.args = (f"{self.location}: {self.message}",)
        return self


class ConfigurationError(LocatedError):
    """Malformed configuration or missing template root."""

    kind = "Configuration error"


class DocumentReadError(LocatedError):
    """A content file could not be read."""

    kind = "Read error"


class FrontmatterError(LocatedError):
    """Base class for frontmatter failures."""

    kind = "Frontmatter error"


class FrontmatterSyntaxError(FrontmatterError):
    """The frontmatter block is not a well-formed YAML mapping."""

    kind = "Frontmatter syntax error"


class FrontmatterTypeError(FrontmatterError):
    """A recognized frontmatter field has the wrong type or value."""

    kind = "Frontmatter type error"


class ResolutionError(LocatedError):
    """Base class for template resolution failures."""

    kind = "Resolution error"


class TemplateNotFound(ResolutionError):
    """No template in the template set matched the document.

    Attributes:
        candidates: Template names that were tried, in order.
    """

    kind = "Template not found"

    def __init__(
        self, source_path: str | Path, candidates: Sequence[str], **kwargs
    ):
        self.candidates = tuple(candidates)
        tried = ", ".join(self.candidates) or "(none)"
        super().__init__(source_path, f"no template matched (tried: {tried})", **kwargs)


class AmbiguousTemplate(ResolutionError):
    """More than one reserved-name entry matched the document.

    Attributes:
        matches: The conflicting ``(rule, template)`` pairs.
    """

    kind = "Ambiguous template"

    def __init__(
        self, source_path: str | Path, matches: Sequence[tuple[str, str]], **kwargs
    ):
        self.matches = tuple(matches)
        listed = "; ".join(f"{rule} -> {template}" for rule, template in self.matches)
        super().__init__(
            source_path, f"multiple reserved names match: {listed}", **kwargs
        )


class RenderExecutionError(LocatedError):
    """The template failed while executing against the document.

    Attributes:
        template_path: File of the template where the failure happened, if known.
        template_line: 1-based line within that template, if known.
    """

    kind = "Render error"

    def __init__(
        self,
        source_path: str | Path,
        message: str,
        *,
        template_path: Path | None = None,
        template_line: int | None = None,
        **kwargs,
    ):
        self.template_path = template_path
        self.template_line = template_line
        super().__init__(source_path, message, **kwargs)


class RenderTimeout(RenderExecutionError):
    """Rendering did not finish within the per-document time limit."""

    kind = "Render timeout"


class OutputError(LocatedError):
    """The rendered page could not be written."""

    kind = "Output error"
