from __future__ import annotations

import argparse
import logging
import queue
import signal
import threading
from pathlib import Path
from typing import Callable, List, Optional

from . import config
from .config import ConfigError, Settings, load_settings
from .monitor import Monitor

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


class ReloadController:
    """Reloads the watch file when asked to, from its own worker thread.

    Signal handlers only queue a request; the worker builds the new
    configuration, swaps it in and runs one cycle right away. A watch file
    that fails to load leaves the running configuration untouched.
    """

    def __init__(
        self,
        monitor: Monitor,
        config_path: str | Path,
        *,
        loader: Callable[[str | Path], Settings] = load_settings,
    ) -> None:
        self.monitor = monitor
        self.config_path = config_path
        self._loader = loader
        self._requests: "queue.Queue[str]" = queue.Queue()

    def trigger(self, reason: str = "manual") -> None:
        self._requests.put(reason)

    def handle_signal(self, signum: int, frame: object) -> None:
        self.trigger(signal.Signals(signum).name)

    def reload(self, reason: str = "manual") -> bool:
        """Load the watch file again; returns True if the new one is in use."""
        logger.info("Reloading %s (%s)", self.config_path, reason)
        try:
            settings = self._loader(self.config_path)
        except ConfigError as e:
            logger.error("Reload failed, keeping the current configuration: %s", e)
            return False
        self.monitor.install(settings)
        logger.info("Loaded new config after %s", reason)

        # Check right away; waits for a running cycle to finish first.
        try:
            self.monitor.run_cycle()
        except Exception:
            logger.exception("Unexpected error during check after reload")
        return True

    def run(self) -> None:
        while True:
            reason = self._requests.get()
            try:
                self.reload(reason)
            except Exception:
                logger.exception("Unexpected error while reloading")
            finally:
                self._requests.task_done()

    def start(self) -> threading.Thread:
        t = threading.Thread(target=self.run, name="reload", daemon=True)
        t.start()
        return t


def scheduler_loop(monitor: Monitor, stop: Optional[threading.Event] = None) -> None:
    """Run a cycle, sleep INTERVAL minutes, repeat until `stop` is set."""
    stop = stop or threading.Event()
    while not stop.is_set():
        try:
            monitor.run_cycle()
        except Exception:
            logger.exception("Unexpected error during check cycle")

        minutes = monitor.current().settings.interval
        logger.debug("Sleeping for %d minutes before next check.", minutes)
        stop.wait(minutes * 60)


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="finnwatch",
        description="Watch finn.no searches and e-mail new ads.",
        epilog="Send SIGHUP to reload the config file and reset the memory of seen ads.",
    )
    parser.add_argument("config", help="watch file, e.g. finnwatch.conf")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Load the watch file and poll forever."""
    args = _parse_args(argv)  # exits with status 2 when the config path is missing
    setup_logging()

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        logger.error("%s", e)
        raise SystemExit(1)

    monitor = Monitor(settings)
    reloader = ReloadController(monitor, args.config)
    reloader.start()
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, reloader.handle_signal)
    else:
        logger.warning("SIGHUP is not available on this platform; reloading is disabled.")

    logger.info(
        "Watching %d URLs every %d minutes, sending new ads to %s.",
        len(settings.urls), settings.interval, settings.to_email,
    )
    scheduler_loop(monitor)


if __name__ == "__main__":
    main()
