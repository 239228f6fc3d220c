"""Turns the new ads found for one search into the e-mail content."""

from __future__ import annotations

from typing import Dict, Sequence

from .config import Settings
from .scraper import ListingItem
from .templates import render_template


def build_digest_data(target: str, items: Sequence[ListingItem]) -> Dict[str, object]:
    return {
        "ads": "\n".join(item.headline() for item in items),
        "num_results": len(items),
        "search_url": target,
    }


def compose_digest(settings: Settings, target: str, items: Sequence[ListingItem]) -> str:
    """Render the configured template; raises TemplateError on failure."""
    return render_template(settings.template, build_digest_data(target, items))
