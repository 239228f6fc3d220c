from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

import requests
from bs4 import BeautifulSoup
from bs4.element import Tag

from . import config
from .utils import get_http_session, retryable_request

logger = logging.getLogger(__name__)

# Shown instead of a price when the ad doesn't list one.
NO_PRICE = "0,-"

AD_URL = "https://www.finn.no/finn/finncode/result?finncode={finncode}"

_AD_LIST_SELECTOR = "div[data-automation-id='adList']"
_TITLE_SELECTOR = "h2[data-automation-id='titleRow']"
_PRICE_SELECTOR = "span[data-automation-id='bodyRow']"
_PROMOTED_CLASS = "bg-promoted"


@dataclass(frozen=True)
class ListingItem:
    id: str            # finn code, stable across page loads
    title: str
    price: str = NO_PRICE

    @property
    def url(self) -> str:
        return AD_URL.format(finncode=self.id)

    def headline(self) -> str:
        """One line of the digest: title, price and a link to the ad."""
        return f"{self.title} ({self.price}) - {self.url}"


class FetchError(Exception):
    """Raised when a search page can't be downloaded."""


@retryable_request
def _get(session: requests.Session, url: str, **kwargs: dict) -> requests.Response:
    """Thin wrapper around session.get with retry policy from utils.retryable_request."""
    return session.get(url, **kwargs)


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def fetch_document(
    url: str,
    user_agent: str,
    *,
    session: Optional[requests.Session] = None,
) -> BeautifulSoup:
    """Download one search page and return it parsed.

    Every failure (network, HTTP status, retries exhausted) is raised as
    FetchError so callers only need to handle one type.
    """
    close_session = False
    if session is None:
        session = get_http_session(user_agent)
        close_session = True

    try:
        resp = _get(
            session,
            url,
            headers={"User-Agent": user_agent},
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
        return parse_document(resp.text)
    except Exception as e:
        raise FetchError(f"Could not fetch {url}: {e}") from e
    finally:
        if close_session:
            session.close()


def _text(el: Optional[Tag]) -> str:
    return el.get_text(" ", strip=True) if el is not None else ""


def _is_promoted(ad: Tag) -> bool:
    if _PROMOTED_CLASS in (ad.get("class") or []):
        return True
    flag = ad.get("data-promoted")
    return flag is not None and str(flag).strip().lower() not in ("false", "0")


def extract_items(doc: BeautifulSoup) -> Iterator[ListingItem]:
    """Yield the ads on a search page in page order.

    Promoted ads are skipped. A page without the ad list (no results, or a
    layout we don't know) yields nothing.
    """
    ad_list = doc.select_one(_AD_LIST_SELECTOR)
    if ad_list is None:
        logger.debug("No ad list found on page")
        return

    for ad in ad_list.find_all("a", recursive=False):
        if _is_promoted(ad):
            continue

        finncode = str(ad.get("id") or "").strip()
        if not finncode:
            logger.debug("Skipping ad without finn code: %s", str(ad)[:120])
            continue

        title = _text(ad.select_one(_TITLE_SELECTOR)) or finncode
        price = _text(ad.select_one(_PRICE_SELECTOR)) or NO_PRICE
        yield ListingItem(id=finncode, title=title, price=price)


__all__ = [
    "NO_PRICE",
    "AD_URL",
    "ListingItem",
    "FetchError",
    "parse_document",
    "fetch_document",
    "extract_items",
]
