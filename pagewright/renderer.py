"""Page rendering for Pagewright.

This module runs a resolved Jinja2 template against one document. Templates
see a fixed, documented set of bindings and nothing else from the build:

- ``page``: path, url, title, kind, date, description, tags, draft, template.
- ``frontmatter``: every frontmatter field, recognized and residual.
- ``content``: the body converted to HTML (Markdown or HTML passthrough).
- ``raw_body``: the body as authored.
- ``toc``: headings collected from the body.
- ``site``: the configured site metadata.
- ``url_for`` and ``render_toc`` helpers.

Undefined names are errors (StrictUndefined). Every failure inside the
template, including syntax errors, missing includes and recursive inclusion,
is converted into a RenderExecutionError naming the document and, when
Jinja2 reports it, the template line.

Key classes:
- PageRenderer: Renders documents with templates from a TemplateSet.
- RenderResult: Output bytes plus the document they came from.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateSyntaxError,
    UndefinedError,
    select_autoescape,
)
from jinja2 import TemplateNotFound as JinjaTemplateNotFound
from markupsafe import Markup

from .content import UrlDeriver
from .errors import RenderExecutionError
from .frontmatter import Document, Frontmatter
from .renderers import Heading, RendererRegistry, default_renderer_registry
from .resolver import default_kind
from .templates import TemplateRef, TemplateSet
from .utils import escape_html, extract_date_from_name, join_root_url, titleize

logger = logging.getLogger(__name__)

__all__ = ["PageRenderer", "RenderResult", "render_toc"]


@dataclass(frozen=True)
class RenderResult:
    """A rendered page.

    Attributes:
        document: Identifier of the document the output came from.
        template: Template used to render it.
        url: URL path the page is published at.
        output: Rendered page, UTF-8 encoded.
    """

    document: str
    template: TemplateRef
    url: str
    output: bytes


def render_toc(headings: list[Heading]) -> Markup:
    """Render headings as a nested ``<ul>`` table of contents.

    Args:
        headings: Headings in document order.

    Returns:
        Markup-safe HTML string of the nested TOC, or empty Markup if no headings.
    """
    if not headings:
        return Markup("")

    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class PageRenderer:
    """Jinja2 renderer bound to one template set.

    The environment is built once and shared across worker threads; rendering
    does not mutate it.

    Attributes:
        templates: The template set templates are loaded from.
        site: Site metadata exposed as ``site``.
        root_url: Optional base URL applied by ``url_for``.
        env: Jinja2 environment.
    """

    def __init__(
        self,
        templates: TemplateSet,
        site: Mapping[str, Any] | None = None,
        root_url: str = "",
        renderer_registry: RendererRegistry | None = None,
    ):
        self.templates = templates
        self.site = MappingProxyType(dict(site or {}))
        self.root_url = root_url
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.url_deriver = UrlDeriver()
        self.env = Environment(
            loader=FileSystemLoader(str(templates.root)),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
        )
        self.env.globals["url_for"] = self._url_for
        self.env.globals["render_toc"] = render_toc

    def _url_for(self, path: str) -> str:
        """Generate a URL for a path, applying root_url if configured."""
        if path.startswith(("http://", "https://", "//")):
            return path
        return join_root_url(self.root_url, path)

    def render(
        self, template: TemplateRef, document: Document, frontmatter: Frontmatter
    ) -> RenderResult:
        """Render a document with a resolved template.

        Args:
            template: The resolved template.
            document: The document being rendered.
            frontmatter: Its parsed frontmatter.

        Returns:
            RenderResult with the UTF-8 encoded page.

        Raises:
            RenderExecutionError: If conversion or template execution fails.
        """
        url = self.url_deriver.derive(document.path)
        try:
            content, toc = self._convert_body(document)
            context = self.bindings(document, frontmatter, content, toc, template, url)
            jinja_template = self.env.get_template(template.name)
            rendered = jinja_template.render(context)
        except RenderExecutionError:
            raise
        except Exception as exc:  # noqa: BLE001 - converted to a located error
            raise self._execution_error(exc, template, document) from exc
        return RenderResult(
            document=document.path,
            template=template,
            url=url,
            output=rendered.encode("utf-8"),
        )

    def bindings(
        self,
        document: Document,
        frontmatter: Frontmatter,
        content: str,
        toc: list[Heading],
        template: TemplateRef,
        url: str,
    ) -> dict[str, Any]:
        """Build the complete set of names visible to the template."""
        path = PurePosixPath(document.path)
        kind = frontmatter.kind or default_kind(path)
        page = {
            "path": document.path,
            "url": url,
            "title": frontmatter.title or _first_title(toc) or titleize(path.name),
            "kind": kind.value,
            "date": frontmatter.date or extract_date_from_name(path.stem),
            "description": frontmatter.description or "",
            "tags": list(frontmatter.tags),
            "draft": frontmatter.draft,
            "template": template.name,
        }
        return {
            "page": page,
            "frontmatter": frontmatter.as_context(),
            "content": Markup(content),
            "raw_body": document.body,
            "toc": toc,
            "site": self.site,
        }

    def _convert_body(self, document: Document) -> tuple[str, list[Heading]]:
        path = PurePosixPath(document.path)
        converter = self.renderer_registry.get_renderer(path)
        if converter is None:
            return document.body, []
        folder = "" if path.parent == PurePosixPath(".") else path.parent.as_posix()
        return converter.render(document.body, folder)

    def _execution_error(
        self, exc: BaseException, template: TemplateRef, document: Document
    ) -> RenderExecutionError:
        """Convert an exception raised while rendering into a located error."""
        template_name, template_path, line = self._template_position(exc, template)

        if isinstance(exc, TemplateSyntaxError):
            template_name = exc.name or template_name
            template_path = Path(exc.filename) if exc.filename else template_path
            line = exc.lineno
            reason = f"template syntax error: {exc.message}"
        elif isinstance(exc, JinjaTemplateNotFound):
            reason = f"included template not found: {exc.name}"
        elif isinstance(exc, RecursionError):
            reason = "recursive template inclusion"
        elif isinstance(exc, UndefinedError):
            reason = f"undefined variable: {exc.message}"
        elif isinstance(exc, TypeError):
            reason = f"type error: {exc}"
        else:
            reason = f"{type(exc).__name__}: {exc}"

        where = f" (template {template_name}" + (f", line {line})" if line else ")")
        logger.debug("Render of %s failed in %s", document.path, template_name, exc_info=exc)
        return RenderExecutionError(
            document.path,
            reason + where,
            template=template_name,
            template_path=template_path,
            template_line=line,
            source=document.source,
            original_error=exc,
        )

    def _template_position(
        self, exc: BaseException, template: TemplateRef
    ) -> tuple[str, Path | None, int | None]:
        """Find the innermost template frame in a Jinja2 rewritten traceback."""
        name, path, line = template.name, template.path, None
        root = self.templates.root.resolve()
        for frame, lineno in traceback.walk_tb(exc.__traceback__):
            filename = frame.f_code.co_filename
            if not filename or filename.startswith("<"):
                continue
            candidate = Path(filename)
            try:
                rel = candidate.resolve().relative_to(root)
            except (OSError, ValueError):
                continue
            name, path, line = rel.as_posix(), candidate, lineno
        return name, path, line


def _first_title(toc: list[Heading]) -> str | None:
    for heading in toc:
        if heading.level == 1:
            return heading.text
    return None
