"""Typed frontmatter for Pagewright documents.

This module splits a content file into its YAML frontmatter block and body,
and projects the untyped block onto a fixed set of recognized fields.

Key items:
- Document: A content unit as read from storage (path, raw block, body).
- Frontmatter: The validated, typed view of a document's frontmatter.
- PageKind: Enumeration of recognized page kinds.
- read_document: Split raw text into a Document, recording field positions.
- parse_frontmatter: Validate a raw block into a Frontmatter.
- parse_document: Both steps at once.

Parsing is eager: every recognized field is checked when the document is read,
and a failure names the document and, when YAML reported it, the exact line
and column of the offending value. Unrecognized keys are kept in
``Frontmatter.extra`` untouched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .errors import FrontmatterSyntaxError, FrontmatterTypeError

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<block>.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

# Line of the source file holding the first line of the YAML block.
BLOCK_FIRST_LINE = 2

MERGE_TAG = "tag:yaml.org,2002:merge"

_EMPTY: Mapping[str, Any] = MappingProxyType({})


class PageKind(str, Enum):
    """Recognized values of the ``kind`` field."""

    POST = "post"
    PAGE = "page"


RECOGNIZED_FIELDS = ("title", "template", "kind", "date", "description", "tags", "draft")


@dataclass(frozen=True)
class Document:
    """A content unit read from storage.

    Attributes:
        path: Stable identifier, the POSIX path relative to the content root.
        raw_frontmatter: The frontmatter mapping exactly as authored.
        body: Text following the frontmatter block.
        source: Absolute path of the file on disk, if it was read from one.
        body_line: 1-based line at which the body starts in the source file.
        positions: ``field -> (line, column)`` of each top-level value, 1-based.
    """

    path: str
    raw_frontmatter: Mapping[str, Any]
    body: str
    source: Path | None = None
    body_line: int = 1
    positions: Mapping[str, tuple[int, int]] = field(
        default_factory=lambda: MappingProxyType({})
    )


@dataclass(frozen=True)
class Frontmatter:
    """Typed projection of a document's frontmatter.

    Attributes:
        title: Page title.
        template: Explicit template override, relative to the pages root.
        kind: Declared page kind.
        date: Publication date.
        description: Short summary of the page.
        tags: Tag names.
        draft: Whether the page is a draft.
        extra: Unrecognized keys, preserved as authored.
    """

    title: str | None = None
    template: str | None = None
    kind: PageKind | None = None
    date: date | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()
    draft: bool = False
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to a plain mapping.

        Recognized fields left at their defaults are omitted; unrecognized
        keys follow the recognized ones.
        """
        data: dict[str, Any] = {}
        if self.title is not None:
            data["title"] = self.title
        if self.template is not None:
            data["template"] = self.template
        if self.kind is not None:
            data["kind"] = self.kind.value
        if self.date is not None:
            data["date"] = self.date
        if self.description is not None:
            data["description"] = self.description
        if self.tags:
            data["tags"] = list(self.tags)
        if self.draft:
            data["draft"] = True
        data.update(self.extra)
        return data

    def as_context(self) -> dict[str, Any]:
        """Return every field, recognized and residual, for template bindings."""
        context = dict(self.extra)
        context.update(
            title=self.title,
            template=self.template,
            kind=self.kind.value if self.kind else None,
            date=self.date,
            description=self.description,
            tags=list(self.tags),
            draft=self.draft,
        )
        return context


def split_frontmatter(text: str) -> tuple[str | None, str, int]:
    """Split raw file content into its frontmatter block and body.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (block text or None when absent, body, 1-based body line).
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None, text, 1
    body_line = text.count("\n", 0, match.end()) + 1
    return match.group("block"), text[match.end() :], body_line


def _value_positions(
    node: yaml.Node | None, path: str, source: Path | None
) -> dict[str, tuple[int, int]]:
    """Map each top-level key to its value's position, rejecting repeated keys.

    Works on the composed node, before construction flattens merge keys.
    """
    positions: dict[str, tuple[int, int]] = {}
    if not isinstance(node, yaml.MappingNode):
        return positions
    seen: set[tuple[str, str]] = set()
    for key_node, value_node in node.value:
        if not isinstance(key_node, yaml.ScalarNode) or key_node.tag == MERGE_TAG:
            continue
        identity = (key_node.tag, key_node.value)
        if identity in seen:
            mark = key_node.start_mark
            raise FrontmatterSyntaxError(
                path,
                f"duplicate key {key_node.value!r}",
                line=mark.line + BLOCK_FIRST_LINE,
                column=mark.column + 1,
                field=key_node.value,
                source=source,
            )
        seen.add(identity)
        mark = value_node.start_mark
        positions[key_node.value] = (mark.line + BLOCK_FIRST_LINE, mark.column + 1)
    return positions


def read_document(text: str, path: str, source: Path | None = None) -> Document:
    """Build a Document from raw file content.

    Args:
        text: Raw file content.
        path: Document identifier relative to the content root.
        source: Absolute path of the file on disk, for error snippets.

    Returns:
        Document with its raw frontmatter mapping and field positions.

    Raises:
        FrontmatterSyntaxError: If the block is not a YAML mapping with unique
            string keys.
    """
    block, body, body_line = split_frontmatter(text)
    if block is None:
        return Document(path=path, raw_frontmatter=_EMPTY, body=body, source=source)

    loader = yaml.SafeLoader(block)
    try:
        node = loader.get_single_node()
        positions = _value_positions(node, path, source)
        data = loader.construct_document(node) if node is not None else None
    except (yaml.YAMLError, ValueError) as exc:
        # Out-of-range timestamps surface as ValueError from the constructor.
        mark = getattr(exc, "problem_mark", None)
        problem = getattr(exc, "problem", None) or str(exc)
        raise FrontmatterSyntaxError(
            path,
            f"invalid YAML: {problem}",
            line=mark.line + BLOCK_FIRST_LINE if mark else None,
            column=mark.column + 1 if mark else None,
            source=source,
            original_error=exc,
        ) from exc
    finally:
        loader.dispose()

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterSyntaxError(
            path,
            f"frontmatter must be a mapping, got {type(data).__name__}",
            line=BLOCK_FIRST_LINE,
            column=1,
            source=source,
        )

    for key in data:
        if not isinstance(key, str):
            raise FrontmatterSyntaxError(
                path,
                f"frontmatter keys must be strings, got {key!r}",
                source=source,
            )

    return Document(
        path=path,
        raw_frontmatter=MappingProxyType(data),
        body=body,
        source=source,
        body_line=body_line,
        positions=MappingProxyType(positions),
    )


class _FieldReader:
    """Reads recognized fields out of a raw mapping, raising located errors."""

    def __init__(
        self,
        raw: Mapping[str, Any],
        path: str,
        positions: Mapping[str, tuple[int, int]],
        source: Path | None,
    ):
        self.raw = raw
        self.path = path
        self.positions = positions
        self.source = source

    def fail(self, name: str, reason: str) -> FrontmatterTypeError:
        line, column = self.positions.get(name, (None, None))
        return FrontmatterTypeError(
            self.path,
            f"field '{name}' {reason}",
            line=line,
            column=column,
            field=name,
            source=self.source,
        )

    def string(self, name: str) -> str | None:
        value = self.raw.get(name)
        if value is None:
            return None
        if not isinstance(value, str):
            raise self.fail(name, f"must be a string, got {type(value).__name__}")
        return value

    def kind(self, name: str) -> PageKind | None:
        value = self.string(name)
        if value is None:
            return None
        try:
            return PageKind(value)
        except ValueError:
            allowed = ", ".join(k.value for k in PageKind)
            raise self.fail(name, f"must be one of {{{allowed}}}, got {value!r}") from None

    def date(self, name: str) -> date | None:
        value = self.raw.get(name)
        if value is None:
            return None
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError:
                raise self.fail(
                    name, f"must be a date in YYYY-MM-DD form, got {value!r}"
                ) from None
        raise self.fail(name, f"must be a date, got {type(value).__name__}")

    def tags(self, name: str) -> tuple[str, ...]:
        value = self.raw.get(name)
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        if not isinstance(value, list):
            raise self.fail(name, f"must be a list of strings, got {type(value).__name__}")
        for item in value:
            if not isinstance(item, str):
                raise self.fail(
                    name, f"must contain only strings, got {type(item).__name__}"
                )
        return tuple(value)

    def boolean(self, name: str) -> bool:
        value = self.raw.get(name, False)
        if value is None:
            return False
        if not isinstance(value, bool):
            raise self.fail(name, f"must be true or false, got {value!r}")
        return value


def parse_frontmatter(
    raw: Mapping[str, Any],
    path: str,
    *,
    positions: Mapping[str, tuple[int, int]] | None = None,
    source: Path | None = None,
) -> Frontmatter:
    """Validate a raw frontmatter mapping into a Frontmatter.

    Args:
        raw: The frontmatter mapping as authored.
        path: Document identifier, used in errors.
        positions: Optional ``field -> (line, column)`` map for error locations.
        source: Absolute path of the file on disk, for error snippets.

    Returns:
        Frontmatter with every recognized field type-checked.

    Raises:
        FrontmatterSyntaxError: If ``raw`` is not a mapping.
        FrontmatterTypeError: If a recognized field has the wrong shape.
    """
    if not isinstance(raw, Mapping):
        raise FrontmatterSyntaxError(
            path, f"frontmatter must be a mapping, got {type(raw).__name__}", source=source
        )
    reader = _FieldReader(raw, path, positions or {}, source)
    extra = {key: value for key, value in raw.items() if key not in RECOGNIZED_FIELDS}
    return Frontmatter(
        title=reader.string("title"),
        template=reader.string("template"),
        kind=reader.kind("kind"),
        date=reader.date("date"),
        description=reader.string("description"),
        tags=reader.tags("tags"),
        draft=reader.boolean("draft"),
        extra=MappingProxyType(extra),
    )


def dump_frontmatter(frontmatter: Frontmatter) -> str:
    """Render a Frontmatter as a ``---`` fenced YAML block."""
    data = frontmatter.to_dict()
    if not data:
        return ""
    block = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return f"---\n{block}---\n"


def parse_document(
    text: str, path: str, source: Path | None = None
) -> tuple[Document, Frontmatter]:
    """Read raw file content and validate its frontmatter in one step.

    Raises:
        FrontmatterError: If the block is malformed or a field is mistyped.
    """
    document = read_document(text, path, source)
    frontmatter = parse_frontmatter(
        document.raw_frontmatter, path, positions=document.positions, source=source
    )
    return document, frontmatter
