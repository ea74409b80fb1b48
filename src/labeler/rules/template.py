"""
Label templates.

Renders a user-authored Jinja2 template against matched features and
parses the output into labels, one "name=value" per line.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from jinja2 import StrictUndefined, TemplateError as JinjaTemplateError
from jinja2.sandbox import SandboxedEnvironment

from labeler.rules.errors import TemplateError


logger = logging.getLogger(__name__)


# Template variable holding all matched domains
ROOT_VARIABLE = "features"

# Undefined fields raise instead of rendering as empty strings
_environment = SandboxedEnvironment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)


def parse_label_lines(text: str) -> dict[str, str]:
    """
    Parse template output into labels.

    Blank lines are skipped; a line without "=" is a boolean label with
    value "true".

    Args:
        text: Rendered template output

    Returns:
        Dictionary of label name to value
    """
    labels: dict[str, str] = {}
    for line in text.split("\n"):
        line = line.strip()
        if not line:
            continue
        name, sep, value = line.partition("=")
        labels[name] = value if sep else "true"
    return labels


class LabelTemplate:
    """
    Compiled label template.

    The template is compiled once on construction and is read-only
    afterwards, so a single instance can be rendered from many threads.
    """

    def __init__(self, source: str) -> None:
        """
        Compile a template.

        Args:
            source: Template text

        Raises:
            TemplateError: If the template does not parse
        """
        self.source = source
        try:
            self._template = _environment.from_string(source)
        except JinjaTemplateError as e:
            raise TemplateError(f"invalid template: {e}") from e

    def __repr__(self) -> str:
        return f"LabelTemplate({self.source!r})"

    def render(self, matched: Mapping[str, Any]) -> str:
        """
        Render the template.

        Each domain is a top-level variable. The whole mapping is also
        available as ``features``, for domain names that are not valid
        identifiers (``features["domain-1"]``). A domain named "features"
        takes precedence over the root.

        Args:
            matched: Matched features, keyed by domain

        Raises:
            TemplateError: If rendering fails, e.g. on an undefined field
        """
        context = {ROOT_VARIABLE: dict(matched)}
        context.update(matched)
        try:
            return self._template.render(context)
        except Exception as e:
            raise TemplateError(f"failed to execute template: {e}") from e

    def expand(self, matched: Mapping[str, Any]) -> dict[str, str]:
        """Render the template and parse its output into labels."""
        output = self.render(matched)
        labels = parse_label_lines(output)
        logger.debug("Template produced %d labels", len(labels))
        return labels
