"""Template resolution for Pagewright.

This module decides which template renders a given document. Resolution is a
pure function of the document path, its frontmatter and the template set, and
follows one precedence order (highest first):

1. Explicit override: ``template:`` in the frontmatter. It must exist; a
   missing override fails instead of falling through.
2. Reserved names: a configured, ordered table of match rules. The site index
   is just one entry in it (``is-root-index -> _index.html``). If two entries
   match the same document, resolution fails as ambiguous.
3. Path convention: candidate names derived from the document location.
4. Otherwise TemplateNotFound, listing every candidate tried.

Key classes:
- ReservedName / ReservedNameSet: The reserved-name table.
- TemplateResolver: Applies the precedence order.
- Resolution: The outcome, with the rule that produced it.
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from .errors import AmbiguousTemplate, ConfigurationError, TemplateNotFound
from .frontmatter import Document, Frontmatter, PageKind
from .protocols import MatchRule
from .templates import TemplateRef, TemplateSet

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "default.html"
TEMPLATE_SUFFIX = ".html"


def _is_index(path: PurePosixPath) -> bool:
    return path.stem == "index"


class RootIndexRule:
    """Matches the site index, ``index.*`` at the content root."""

    def matches(self, document: Document, frontmatter: Frontmatter) -> bool:
        path = PurePosixPath(document.path)
        return _is_index(path) and path.parent == PurePosixPath(".")

    def __str__(self) -> str:
        return "is-root-index"


class IndexRule:
    """Matches any section index, ``index.*`` at any depth."""

    def matches(self, document: Document, frontmatter: Frontmatter) -> bool:
        return _is_index(PurePosixPath(document.path))

    def __str__(self) -> str:
        return "is-index"


class PathEqualsRule:
    """Matches one exact document path."""

    def __init__(self, path: str):
        self.path = PurePosixPath(path).as_posix()

    def matches(self, document: Document, frontmatter: Frontmatter) -> bool:
        return document.path == self.path

    def __str__(self) -> str:
        return f"path=={self.path}"


class PathGlobRule:
    """Matches document paths against a shell-style glob."""

    def __init__(self, pattern: str):
        self.pattern = pattern

    def matches(self, document: Document, frontmatter: Frontmatter) -> bool:
        return fnmatch.fnmatchcase(document.path, self.pattern)

    def __str__(self) -> str:
        return f"path~={self.pattern}"


class KindEqualsRule:
    """Matches documents whose frontmatter declares a given kind."""

    def __init__(self, kind: PageKind):
        self.kind = kind

    def matches(self, document: Document, frontmatter: Frontmatter) -> bool:
        return frontmatter.kind is self.kind

    def __str__(self) -> str:
        return f"kind=={self.kind.value}"


_KEYWORD_RULES = {
    "is-root-index": RootIndexRule,
    "is-index": IndexRule,
}


def parse_match_rule(text: str) -> MatchRule:
    """Parse a match rule from its configuration string.

    Supported forms: ``is-root-index``, ``is-index``, ``path==<path>``,
    ``path~=<glob>`` and ``kind==<kind>``.

    Args:
        text: The rule as written in configuration.

    Returns:
        A MatchRule implementation.

    Raises:
        ValueError: If the rule is not recognized.
    """
    rule = text.strip()
    if rule in _KEYWORD_RULES:
        return _KEYWORD_RULES[rule]()
    for prefix, factory in (("path==", PathEqualsRule), ("path~=", PathGlobRule)):
        if rule.startswith(prefix):
            value = rule[len(prefix) :].strip()
            if not value:
                raise ValueError(f"empty value in match rule {text!r}")
            return factory(value)
    if rule.startswith("kind=="):
        value = rule[len("kind==") :].strip()
        try:
            return KindEqualsRule(PageKind(value))
        except ValueError:
            allowed = ", ".join(k.value for k in PageKind)
            raise ValueError(
                f"unknown kind {value!r} in match rule (expected one of {allowed})"
            ) from None
    raise ValueError(f"unknown match rule {text!r}")


@dataclass(frozen=True)
class ReservedName:
    """One entry of the reserved-name table.

    Attributes:
        rule: Predicate selecting the documents this entry applies to.
        template: Template name used for matching documents.
    """

    rule: MatchRule
    template: str

    def __str__(self) -> str:
        return f"{self.rule} -> {self.template}"


class ReservedNameSet(Sequence[ReservedName]):
    """Ordered, read-only table of reserved names.

    Attributes:
        source: File the table was configured in, used to locate errors.
    """

    def __init__(self, entries: Iterable[ReservedName] = (), source: Path | None = None):
        self._entries = tuple(entries)
        self.source = source

    @classmethod
    def default(cls) -> ReservedNameSet:
        """Return the table used when none is configured."""
        return cls([ReservedName(RootIndexRule(), "_index.html")])

    @classmethod
    def from_config(
        cls, entries: Sequence[Mapping[str, Any]], source: Path
    ) -> ReservedNameSet:
        """Build the table from ``reserved_names`` configuration entries.

        Args:
            entries: Sequence of ``{match: <rule>, template: <name>}`` mappings.
            source: Configuration file, used to locate errors.

        Returns:
            ReservedNameSet in configured order.

        Raises:
            ConfigurationError: If an entry is malformed.
        """
        parsed = []
        for index, entry in enumerate(entries):
            key = f"reserved_names[{index}]"
            if not isinstance(entry, Mapping):
                raise ConfigurationError(source, f"{key} must be a mapping", field=key)
            match = entry.get("match")
            template = entry.get("template")
            if not isinstance(match, str):
                raise ConfigurationError(
                    source, f"{key}.match must be a string", field=f"{key}.match"
                )
            if not isinstance(template, str) or not template.strip():
                raise ConfigurationError(
                    source, f"{key}.template must be a non-empty string", field=f"{key}.template"
                )
            try:
                rule = parse_match_rule(match)
            except ValueError as exc:
                raise ConfigurationError(
                    source, f"{key}.match: {exc}", field=f"{key}.match", original_error=exc
                ) from exc
            parsed.append(ReservedName(rule, template.strip()))
        return cls(parsed, source=source)

    def available_in(self, templates: TemplateSet) -> ReservedNameSet:
        """Return the entries whose template exists in ``templates``."""
        return ReservedNameSet(
            (entry for entry in self._entries if entry.template in templates),
            source=self.source,
        )

    def validate(self, templates: TemplateSet) -> None:
        """Check that every entry names a template that exists.

        Raises:
            ConfigurationError: If an entry's template is missing.
        """
        for index, entry in enumerate(self._entries):
            if entry.template not in templates:
                raise ConfigurationError(
                    self.source or templates.root,
                    f"reserved name '{entry.rule}' refers to missing template "
                    f"'{entry.template}' under {templates.root}",
                    field=f"reserved_names[{index}].template",
                )

    def matching(self, document: Document, frontmatter: Frontmatter) -> list[ReservedName]:
        return [entry for entry in self._entries if entry.rule.matches(document, frontmatter)]

    def __getitem__(self, index):
        return self._entries[index]

    def __iter__(self) -> Iterator[ReservedName]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"ReservedNameSet({', '.join(str(e) for e in self._entries)})"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a document.

    Attributes:
        template: The selected template.
        via: ``"override"``, ``"reserved"`` or ``"convention"``.
        rule: The reserved rule that matched, when ``via == "reserved"``.
        candidates: Names tried before (and including) the selected one.
    """

    template: TemplateRef
    via: str
    rule: str | None = None
    candidates: tuple[str, ...] = ()


def default_kind(path: PurePosixPath) -> PageKind:
    """Return the kind assumed when the frontmatter declares none."""
    return PageKind.POST if path.parent != PurePosixPath(".") else PageKind.PAGE


def convention_candidates(document: Document, frontmatter: Frontmatter) -> list[str]:
    """List template names derived from the document location, in lookup order.

    For ``blog/2024/post1.md`` with no declared kind this yields
    ``blog/2024/post1.html``, ``blog-2024-post.html``, ``blog-2024.html``,
    ``post.html`` and ``default.html``.

    Args:
        document: Document being resolved.
        frontmatter: Its parsed frontmatter.

    Returns:
        Candidate template names, without duplicates.
    """
    path = PurePosixPath(document.path)
    kind = (frontmatter.kind or default_kind(path)).value
    folder = "" if path.parent == PurePosixPath(".") else path.parent.as_posix()
    candidates: list[str] = []

    if folder:
        namespace = folder.replace("/", "-")
        candidates.append(f"{folder}/{path.stem}{TEMPLATE_SUFFIX}")
        candidates.append(f"{namespace}-{kind}{TEMPLATE_SUFFIX}")
        candidates.append(f"{namespace}{TEMPLATE_SUFFIX}")
    else:
        candidates.append(f"{path.stem}{TEMPLATE_SUFFIX}")
    candidates.append(f"{kind}{TEMPLATE_SUFFIX}")
    candidates.append(DEFAULT_TEMPLATE)
    return list(dict.fromkeys(candidates))


class TemplateResolver:
    """Selects exactly one template per document.

    Attributes:
        templates: Snapshot of available templates.
        reserved: The reserved-name table. When none is given, the default
            table limited to templates that exist.
    """

    def __init__(self, templates: TemplateSet, reserved: ReservedNameSet | None = None):
        self.templates = templates
        if reserved is None:
            reserved = ReservedNameSet.default().available_in(templates)
        self.reserved = reserved

    def resolve(self, document: Document, frontmatter: Frontmatter) -> Resolution:
        """Resolve the template for a document.

        Args:
            document: Document being rendered.
            frontmatter: Its parsed frontmatter.

        Returns:
            Resolution naming the selected template.

        Raises:
            TemplateNotFound: If the override is missing or nothing matched.
            AmbiguousTemplate: If several reserved entries matched.
        """
        if frontmatter.template is not None:
            return self._resolve_override(document, frontmatter.template)

        matches = self.reserved.matching(document, frontmatter)
        if len(matches) > 1:
            raise AmbiguousTemplate(
                document.path,
                [(str(entry.rule), entry.template) for entry in matches],
                source=document.source,
            )
        if matches:
            entry = matches[0]
            ref = self.templates.get(entry.template)
            if ref is None:
                raise TemplateNotFound(
                    document.path, [entry.template], template=entry.template, source=document.source
                )
            logger.debug("%s: reserved rule %s -> %s", document.path, entry.rule, ref.name)
            return Resolution(ref, "reserved", rule=str(entry.rule), candidates=(entry.template,))

        candidates = convention_candidates(document, frontmatter)
        for index, name in enumerate(candidates):
            ref = self.templates.get(name)
            if ref is not None:
                logger.debug("%s: convention -> %s", document.path, name)
                return Resolution(ref, "convention", candidates=tuple(candidates[: index + 1]))
        raise TemplateNotFound(document.path, candidates, source=document.source)

    def _resolve_override(self, document: Document, name: str) -> Resolution:
        ref = self.templates.get(name)
        if ref is None:
            line, column = document.positions.get("template", (None, None))
            raise TemplateNotFound(
                document.path,
                [name],
                line=line,
                column=column,
                field="template",
                template=name,
                source=document.source,
            )
        return Resolution(ref, "override", candidates=(name,))
