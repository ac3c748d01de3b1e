"""Project configuration for Pagewright.

Configuration lives in ``pagewright.yaml`` at the project root. Every key is
optional; relative directories are resolved against the project root.

    content_dir: content
    templates_dir: templates/pages
    output_dir: output
    root_url: ""
    workers: 8
    timeout: 30
    site:
      title: My Site
    reserved_names:
      - {match: is-root-index, template: _index.html}
      - {match: "path==about.md", template: _about.html}

Any malformed value raises ConfigurationError naming the file and key; such
errors are build-fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .errors import ConfigurationError
from .resolver import ReservedNameSet

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "pagewright.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "content_dir": "content",
    "templates_dir": "templates/pages",
    "output_dir": "output",
    "root_url": "",
    "workers": None,
    "timeout": 30.0,
}


@dataclass(frozen=True)
class ProjectConfig:
    """Resolved project configuration.

    Attributes:
        project_root: Directory holding the configuration file.
        content_dir: Root of the content documents.
        templates_dir: Pages template root.
        output_dir: Directory the writer places pages in.
        root_url: Base URL applied by ``url_for``.
        workers: Worker pool size, or None for the executor default.
        timeout: Per-document time limit in seconds.
        site: Site metadata exposed to templates as ``site``.
        reserved_names: The reserved-name table, or None for the default one.
        config_path: File the configuration was read from, if any.
    """

    project_root: Path
    content_dir: Path
    templates_dir: Path
    output_dir: Path
    root_url: str = ""
    workers: int | None = None
    timeout: float = 30.0
    site: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    reserved_names: ReservedNameSet | None = None
    config_path: Path | None = None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        raise ConfigurationError(
            path,
            f"invalid YAML: {getattr(exc, 'problem', None) or exc}",
            line=mark.line + 1 if mark else None,
            column=mark.column + 1 if mark else None,
            source=path,
            original_error=exc,
        ) from exc
    except OSError as exc:
        raise ConfigurationError(path, f"cannot read: {exc}", original_error=exc) from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(path, "configuration must be a mapping", source=path)
    return loaded


def _directory(data: Mapping[str, Any], key: str, root: Path, path: Path) -> Path:
    value = data.get(key, DEFAULT_CONFIG[key])
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(path, f"{key} must be a non-empty string", field=key)
    return (root / value).resolve()


def _parse(data: Mapping[str, Any], root: Path, path: Path) -> ProjectConfig:
    root_url = data.get("root_url", DEFAULT_CONFIG["root_url"]) or ""
    if not isinstance(root_url, str):
        raise ConfigurationError(path, "root_url must be a string", field="root_url")

    workers = data.get("workers", DEFAULT_CONFIG["workers"])
    if workers is not None and (
        isinstance(workers, bool) or not isinstance(workers, int) or workers < 1
    ):
        raise ConfigurationError(path, "workers must be a positive integer", field="workers")

    timeout = data.get("timeout", DEFAULT_CONFIG["timeout"])
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigurationError(path, "timeout must be a positive number", field="timeout")

    site = data.get("site") or {}
    if not isinstance(site, dict):
        raise ConfigurationError(path, "site must be a mapping", field="site")

    entries = data.get("reserved_names")
    if entries is None:
        reserved = None
    elif isinstance(entries, list):
        reserved = ReservedNameSet.from_config(entries, path)
    else:
        raise ConfigurationError(path, "reserved_names must be a list", field="reserved_names")

    config = ProjectConfig(
        project_root=root,
        content_dir=_directory(data, "content_dir", root, path),
        templates_dir=_directory(data, "templates_dir", root, path),
        output_dir=_directory(data, "output_dir", root, path),
        root_url=root_url,
        workers=workers,
        timeout=float(timeout),
        site=MappingProxyType(site),
        reserved_names=reserved,
        config_path=path if path.exists() else None,
    )
    check_output_dir(config, config.output_dir, path)
    return config


def _contains(outer: Path, inner: Path) -> bool:
    return outer == inner or outer in inner.parents


def check_output_dir(config: ProjectConfig, output_dir: Path, path: Path | None = None) -> None:
    """Reject an output directory that overlaps a source directory.

    The output directory is wiped before each build, so it must not hold or
    equal the project root, and must neither hold nor sit inside the content
    or templates directory.

    Raises:
        ConfigurationError: Naming ``output_dir`` when the directories overlap.
    """
    output_dir = output_dir.resolve()
    where = path or config.config_path or config.project_root / CONFIG_FILENAME
    if _contains(output_dir, config.project_root):
        raise ConfigurationError(
            where, f"output_dir {output_dir} contains the project root", field="output_dir"
        )
    for key in ("content_dir", "templates_dir"):
        source = getattr(config, key)
        if _contains(output_dir, source) or _contains(source, output_dir):
            raise ConfigurationError(
                where, f"output_dir {output_dir} overlaps {key} {source}", field="output_dir"
            )


def load_config(project_root: Path, config_path: Path | None = None) -> ProjectConfig:
    """Load project configuration.

    Args:
        project_root: Root directory of the project.
        config_path: Explicit configuration file; defaults to
            ``<project_root>/pagewright.yaml``.

    Returns:
        ProjectConfig with defaults applied.

    Raises:
        ConfigurationError: If an explicit file is missing or any value is invalid.
    """
    project_root = project_root.resolve()
    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(config_path, "configuration file not found")
        path = config_path.resolve()
    else:
        path = project_root / CONFIG_FILENAME

    data = _read_yaml(path) if path.exists() else {}
    config = _parse(data, project_root, path)
    logger.debug("Loaded configuration from %s", config.config_path or "(defaults)")
    return config
