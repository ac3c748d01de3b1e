"""Template discovery for Pagewright.

The template set is an immutable snapshot of every template file under the
pages root (``templates/pages/`` by default). It is scanned once before any
document is processed and shared read-only by the resolver and renderer.

Key classes:
- TemplateRef: Names one template and where it is stored.
- TemplateSet: Read-only mapping of template name to TemplateRef.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateRef:
    """A resolved template.

    Attributes:
        name: POSIX path relative to the pages root, e.g. ``blog-post.html``.
        path: Location of the template file.
    """

    name: str
    path: Path


class TemplateSet(Mapping[str, TemplateRef]):
    """Immutable snapshot of the templates available under a pages root."""

    def __init__(self, root: Path, refs: Iterable[TemplateRef] = ()):
        self.root = root
        self._refs = MappingProxyType({ref.name: ref for ref in refs})

    @classmethod
    def scan(cls, root: Path) -> TemplateSet:
        """Enumerate every template file under ``root``.

        Hidden files and directories (starting with ``.``) are skipped.

        Args:
            root: The pages template root.

        Returns:
            TemplateSet containing one TemplateRef per file.

        Raises:
            ConfigurationError: If ``root`` is missing or not a directory.
        """
        if not root.is_dir():
            raise ConfigurationError(root, "template root does not exist or is not a directory")
        refs = []
        for path in sorted(root.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(root)
            if any(part.startswith(".") for part in rel.parts):
                continue
            refs.append(TemplateRef(name=rel.as_posix(), path=path))
        logger.debug("Found %d templates under %s", len(refs), root)
        return cls(root, refs)

    def __getitem__(self, name: str) -> TemplateRef:
        return self._refs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._refs)

    def __len__(self) -> int:
        return len(self._refs)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TemplateSet({self.root}, {len(self._refs)} templates)"
