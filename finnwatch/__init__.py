"""
finn.no search watcher package.

This package polls finn.no search result pages, remembers which ads it
has already seen, and e-mails a digest when new ads show up. Send SIGHUP
to reload the watch file.
"""

__all__ = [
    "config",
    "digest",
    "emailer",
    "main",
    "monitor",
    "scraper",
    "seen",
    "templates",
    "utils",
]
