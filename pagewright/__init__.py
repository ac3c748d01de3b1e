"""Pagewright page renderer.

This package renders content documents (Markdown or HTML with YAML frontmatter)
into pages using Jinja2 templates discovered under a ``templates/pages/`` root.

The pipeline has four stages:
- Frontmatter: typed, validated metadata parsed from each document.
- Resolution: exactly one template per document, chosen by explicit override,
  a configurable reserved-name table, or a path-derived convention.
- Rendering: the template is executed against a fixed set of bindings.
- Reporting: every failure is a LocatedError naming the offending file.

The main entry point is the CLI module, which provides commands for building
a site, explaining template resolution, and creating new content files.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
