from __future__ import annotations

from pathlib import Path

import pytest

from finnwatch.config import DEFAULT_TEMPLATE
from finnwatch.templates import TemplateError, render_template, validate_template


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "digest.tmpl"
    path.write_text(text, encoding="utf-8")
    return path


def test_packaged_default_template_is_valid() -> None:
    validate_template(DEFAULT_TEMPLATE)


def test_render_fills_all_fields(tmp_path: Path) -> None:
    path = _write(tmp_path, "{num_results} new at {search_url}\n{ads}\n")

    out = render_template(path, {"ads": "a\nb", "num_results": 2, "search_url": "T1"})

    assert out == "2 new at T1\na\nb\n"


def test_unknown_field_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "{Ads}")

    with pytest.raises(TemplateError, match="unknown field"):
        validate_template(path)


def test_positional_field_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "{} new ads")

    with pytest.raises(TemplateError, match="positional"):
        validate_template(path)


def test_unbalanced_braces_are_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "{ads")

    with pytest.raises(TemplateError, match="does not parse"):
        validate_template(path)


def test_escaped_braces_are_literal(tmp_path: Path) -> None:
    path = _write(tmp_path, "{{not a field}} {num_results}")

    validate_template(path)
    assert render_template(path, {"num_results": 3}) == "{not a field} 3"


def test_missing_template_file(tmp_path: Path) -> None:
    with pytest.raises(TemplateError, match="Could not read"):
        validate_template(tmp_path / "nope.tmpl")


def test_render_error_is_template_error(tmp_path: Path) -> None:
    path = _write(tmp_path, "{ads[99]}")

    with pytest.raises(TemplateError, match="Could not render"):
        render_template(path, {"ads": "short"})
