"""Configuration loader.

Process-level settings (logging, SMTP, HTTP) come from environment
variables and `.env`. The watch file passed on the command line holds the
settings that can be reloaded with SIGHUP: see `load_settings`.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import dotenv_values, load_dotenv

from .templates import TemplateError, validate_template

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


# ---- Process settings --------------------------------------------------------

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")

# Deadline for a single page fetch (seconds).
HTTP_TIMEOUT_SECONDS: int = _parse_int(_get_env("HTTP_TIMEOUT_SECONDS"), 30)

# Log the digest instead of handing it to the SMTP server.
DRY_RUN: bool = _parse_bool(_get_env("DRY_RUN"), False)

# ---- Email transport ---------------------------------------------------------

EMAIL_SMTP_HOST: str = _get_env("EMAIL_SMTP_HOST", "localhost")
EMAIL_SMTP_PORT: int = _parse_int(_get_env("EMAIL_SMTP_PORT"), 25)  # 25 (plain), 587 (STARTTLS) or 465 (SSL)
EMAIL_USE_TLS: bool = _parse_bool(_get_env("EMAIL_USE_TLS"), False)
EMAIL_USERNAME: Optional[str] = _get_env("EMAIL_USERNAME")
EMAIL_PASSWORD: Optional[str] = _get_env("EMAIL_PASSWORD")
EMAIL_SUBJECT_PREFIX: str = _get_env("EMAIL_SUBJECT_PREFIX", "[finnwatch]")

# ---- Watch file ----------------------------------------------------------------

DEFAULT_INTERVAL_MINUTES = 30
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; rv:128.0) Gecko/20100101 Firefox/128.0"
DEFAULT_TEMPLATE = Path(__file__).resolve().with_name("default.tmpl")

# Only the mobile search result pages have the layout scraper.extract_items reads.
DEFAULT_URL_PATTERN = r"^(https?://)?m\.finn\.no(/[^/?#]+)*/search\.html(\?.*)?$"


class ConfigError(Exception):
    """Raised when the watch file is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """One validated snapshot of the watch file."""

    urls: Tuple[str, ...]
    interval: int
    to_email: str
    from_email: str
    template: Path
    user_agent: str = DEFAULT_USER_AGENT
    debug: bool = False


def _split_urls(raw: str) -> Tuple[str, ...]:
    # A comma only separates URLs when the next one starts with a scheme;
    # commas inside a query string (?q=sofa,stol) stay put.
    urls: list[str] = []
    for url in re.split(r"\s*,\s*(?=https?://)|\s+", raw):
        if url and url not in urls:
            urls.append(url)
    return tuple(urls)


def _resolve_template(raw: str, base_dir: Path) -> Path:
    if not raw:
        return DEFAULT_TEMPLATE
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def load_settings(path: str | os.PathLike[str]) -> Settings:
    """Read and validate a watch file.

    The file uses ``KEY=value`` lines (``#`` starts a comment), for example::

        URLS=https://m.finn.no/bap/forsale/search.html?q=sofa
        INTERVAL=15
        TO_EMAIL=me@example.com
        FROM_EMAIL=finnwatch@example.com

    Raises ConfigError describing the first problem found.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    raw = {
        key.strip().upper(): (value or "").strip()
        for key, value in dotenv_values(path, interpolate=False).items()
    }

    urls = _split_urls(raw.get("URLS", ""))
    to_email = raw.get("TO_EMAIL", "")
    from_email = raw.get("FROM_EMAIL", "")
    if not urls or not to_email or not from_email:
        raise ConfigError("Invalid configuration. You need to provide TO_EMAIL, FROM_EMAIL and URLS")

    interval_raw = raw.get("INTERVAL") or str(DEFAULT_INTERVAL_MINUTES)
    try:
        interval = int(interval_raw)
    except ValueError:
        raise ConfigError(f"INTERVAL must be a whole number of minutes, got {interval_raw!r}") from None
    if interval < 1:
        raise ConfigError("Interval is too small. Set INTERVAL to a value larger than zero")

    try:
        pattern = re.compile(raw.get("URL_PATTERN") or DEFAULT_URL_PATTERN)
    except re.error as e:
        raise ConfigError(f"URL_PATTERN is not a valid regular expression: {e}") from e
    for url in urls:
        if not pattern.match(url):
            raise ConfigError(
                f"Your URL {url!r} is in an invalid format. Are you using the mobile site?"
            )

    template = _resolve_template(raw.get("TEMPLATE", ""), path.parent)
    try:
        validate_template(template)
    except TemplateError as e:
        raise ConfigError(str(e)) from e

    return Settings(
        urls=urls,
        interval=interval,
        to_email=to_email,
        from_email=from_email,
        template=template,
        user_agent=raw.get("USER_AGENT") or DEFAULT_USER_AGENT,
        debug=_parse_bool(raw.get("DEBUG"), False),
    )


__all__ = [
    # Process
    "LOG_LEVEL",
    "HTTP_TIMEOUT_SECONDS",
    "DRY_RUN",
    # Email
    "EMAIL_SMTP_HOST", "EMAIL_SMTP_PORT", "EMAIL_USE_TLS",
    "EMAIL_USERNAME", "EMAIL_PASSWORD", "EMAIL_SUBJECT_PREFIX",
    # Watch file
    "DEFAULT_INTERVAL_MINUTES",
    "DEFAULT_USER_AGENT",
    "DEFAULT_TEMPLATE",
    "DEFAULT_URL_PATTERN",
    "ConfigError",
    "Settings",
    "load_settings",
]
