"""Digest template rendering.

Templates are plain text files with ``str.format`` placeholders. The
fields a digest exposes are listed in TEMPLATE_FIELDS; anything else is
rejected when the template is validated at load time.
"""

from __future__ import annotations

import os
import string
from pathlib import Path
from typing import Any, Mapping

TEMPLATE_FIELDS = frozenset({"ads", "num_results", "search_url"})

_FORMATTER = string.Formatter()


class TemplateError(Exception):
    """Raised when a template can't be read, parsed or rendered."""


def _read(path: str | os.PathLike[str]) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateError(f"Could not read template {path}: {e}") from e


def _field_root(field: str) -> str:
    # "ads.upper" / "ads[0]" -> "ads"
    for sep in (".", "["):
        field = field.split(sep, 1)[0]
    return field


def check_template_text(text: str, *, name: str = "<template>") -> None:
    """Parse `text` without rendering it and raise TemplateError on problems."""
    try:
        parsed = list(_FORMATTER.parse(text))
    except ValueError as e:
        raise TemplateError(f"Template {name} does not parse: {e}") from e

    for _literal, field, _spec, _conversion in parsed:
        if field is None:
            continue
        root = _field_root(field)
        if not root or root.isdigit():
            raise TemplateError(f"Template {name} uses a positional field; name it, e.g. {{ads}}")
        if root not in TEMPLATE_FIELDS:
            raise TemplateError(
                f"Template {name} uses unknown field {{{root}}}; "
                f"available: {', '.join(sorted(TEMPLATE_FIELDS))}"
            )


def validate_template(path: str | os.PathLike[str]) -> None:
    """Dry run used by the config loader: read and parse, no data needed."""
    check_template_text(_read(path), name=str(path))


def render_template(path: str | os.PathLike[str], data: Mapping[str, Any]) -> str:
    text = _read(path)
    try:
        return text.format_map(data)
    except (KeyError, IndexError, AttributeError, ValueError, TypeError) as e:
        raise TemplateError(f"Could not render template {path}: {e!r}") from e
