"""Helper utilities.

This module centralises the HTTP session used for fetching search pages
and the retry policy applied to those requests.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import requests
from requests import Response
from tenacity import (after_log, retry, retry_if_exception_type,
                      stop_after_attempt, wait_exponential)


logger = logging.getLogger(__name__)


def get_http_session(user_agent: Optional[str] = None) -> requests.Session:
    """Return a new HTTP session that looks like a regular browser.

    Caller is responsible for closing the session or letting it be
    garbage collected.
    """
    session = requests.Session()
    session.headers.update(
        {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "nb-NO,nb;q=0.9,no;q=0.8,en;q=0.6",
        }
    )
    if user_agent:
        session.headers["User-Agent"] = user_agent
    return session


class HTTPError(Exception):
    """Raised when a search page answers with an error status."""


class ServerError(HTTPError):
    """A 5xx answer; worth asking again."""


def _check_status(resp: Response) -> None:
    if resp.status_code >= 500:
        raise ServerError(f"Server returned status {resp.status_code}")
    try:
        resp.raise_for_status()
    except requests.RequestException as e:
        raise HTTPError(str(e)) from e


def retryable_request(method: Callable[..., Response]) -> Callable[..., Response]:
    """Apply the fetch retry policy to an HTTP call.

    The decorated function must accept a `requests.Session` as its first
    argument, followed by URL and optional kwargs, and return a
    `requests.Response`. Network errors and 5xx answers get 3 attempts
    with exponential back-off between 1 and 10 seconds. A 4xx answer
    fails at once, since asking again won't change it.
    """

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=(
            retry_if_exception_type(requests.RequestException)
            | retry_if_exception_type(ServerError)
        ),
        after=after_log(logger, logging.WARNING),
    )
    def wrapper(session: requests.Session, url: str, **kwargs: Any) -> Response:
        response = method(session, url, **kwargs)
        _check_status(response)
        return response

    return wrapper


__all__ = ["get_http_session", "retryable_request", "HTTPError", "ServerError"]
