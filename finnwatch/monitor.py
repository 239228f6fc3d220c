"""Check cycle: fetch every search, find new ads, e-mail a digest per search.

A Monitor holds the active configuration generation: the validated
settings, the memory of seen ads that belongs to them and the baseline
flag. Reloading installs a new generation; the old one, with its memory,
is dropped as a whole.

The first cycle of a generation is the baseline: every ad found is
remembered and nothing is sent. Later cycles send at most
MAX_NEW_PER_CYCLE ads per search; the rest are left unrecorded so the
next cycle picks them up.
"""

from __future__ import annotations

import itertools
import logging
import random
import threading
import time
from typing import Callable, List, Tuple

from bs4 import BeautifulSoup

from .config import Settings
from .digest import compose_digest
from .emailer import DeliveryError, send_mail
from .scraper import FetchError, ListingItem, extract_items, fetch_document
from .seen import SeenTracker
from .templates import TemplateError

logger = logging.getLogger(__name__)

MAX_NEW_PER_CYCLE = 5

# Pause between two searches in the same cycle (seconds).
DEFAULT_PAUSE: Tuple[float, float] = (1.0, 6.0)

Fetcher = Callable[[str, str], BeautifulSoup]
Sender = Callable[[str, str, str], None]


class Generation:
    """One loaded configuration plus the seen-set that belongs to it."""

    _numbers = itertools.count(1)

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.seen = SeenTracker()
        self.baseline = True
        self.number = next(self._numbers)

    def __repr__(self) -> str:
        return f"<Generation {self.number} urls={len(self.settings.urls)} baseline={self.baseline}>"


class Monitor:
    """Runs check cycles against the current generation, one at a time."""

    def __init__(
        self,
        settings: Settings,
        *,
        fetch: Fetcher = fetch_document,
        send: Sender = send_mail,
        pause: Tuple[float, float] = DEFAULT_PAUSE,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetch = fetch
        self._send = send
        self._pause = pause
        self._sleep = sleep
        self._swap_lock = threading.Lock()
        self._run_lock = threading.RLock()
        self._generation = Generation(settings)
        _apply_debug(settings)

    def current(self) -> Generation:
        with self._swap_lock:
            return self._generation

    def install(self, settings: Settings) -> Generation:
        """Make `settings` the active generation and forget everything seen so far."""
        new = Generation(settings)
        with self._swap_lock:
            old, self._generation = self._generation, new
        _apply_debug(settings)
        logger.info(
            "Switched to configuration generation %d (%d URLs, every %d minutes, mail to %s)",
            new.number, len(settings.urls), settings.interval, settings.to_email,
        )
        # A running cycle may still hold the old generation; clear it once that cycle is done.
        with self._run_lock:
            old.seen.reset()
        return new

    def _superseded(self, gen: Generation) -> bool:
        if gen is self.current():
            return False
        logger.info("Configuration reloaded; abandoning cycle of generation %d", gen.number)
        return True

    def run_cycle(self) -> None:
        """Check every URL of the current generation once.

        Blocks while another cycle is running. A cycle whose generation is
        replaced half way stops at its next step and sends nothing more.
        An unexpected error on one URL is logged and the next URL is still
        checked.
        """
        with self._run_lock:
            gen = self.current()
            for idx, url in enumerate(gen.settings.urls):
                if idx:
                    self._sleep(random.uniform(*self._pause))
                if self._superseded(gen):
                    return
                try:
                    self.check_target(gen, url)
                except Exception:
                    logger.exception("Unexpected error while checking %s; moving on", url)
            if self._superseded(gen):
                return

            if gen.baseline:
                gen.baseline = False
                logger.info("Baseline done; now looking for new ads only.")

    def check_target(self, gen: Generation, url: str) -> List[ListingItem]:
        """Check one search URL and return the ads that were new this time."""
        settings = gen.settings
        logger.log(logging.INFO if settings.debug else logging.DEBUG, "Checking %s", url)

        try:
            doc = self._fetch(url, settings.user_agent)
        except FetchError as e:
            logger.error("Skipping %s this cycle: %s", url, e)
            return []
        if self._superseded(gen):
            return []

        fresh: List[ListingItem] = []
        for item in extract_items(doc):
            if not gen.seen.is_new(url, item.id):
                continue
            fresh.append(item)
            gen.seen.record(url, item.id)
            if not gen.baseline and len(fresh) >= MAX_NEW_PER_CYCLE:
                break

        if gen.baseline:
            logger.info(
                "Added %d ads to my memory for %s. Looking for new ads every %d minutes and sending them to %s.",
                gen.seen.count(url), url, settings.interval, settings.to_email,
            )
            return fresh

        if not fresh:
            logger.debug("No new ads for %s", url)
            return fresh

        try:
            content = compose_digest(settings, url, fresh)
        except TemplateError:
            logger.exception("Could not render digest for %s; not sending", url)
            return fresh

        if self._superseded(gen):
            return fresh
        try:
            self._send(settings.to_email, settings.from_email, content)
        except DeliveryError as e:
            logger.error("Found %d new ads for %s but the e-mail failed: %s", len(fresh), url, e)
            return fresh

        logger.info("Found %d new ads! Sent e-mail to %s!", len(fresh), settings.to_email)
        return fresh


def _apply_debug(settings: Settings) -> None:
    logging.getLogger(__package__).setLevel(logging.DEBUG if settings.debug else logging.NOTSET)

