"""
Mocker Configuration Watcher

Polls the configuration file and hot-swaps the active route table.

The file's (size, mtime) signature is compared on a fixed interval. On any
change the file is reloaded; a successful load replaces the table held by
ActiveRoutes in one reference swap, a failed load is logged and the
previous table stays active.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from ..common import stat_signature
from .config import ConfigError, load_config
from .routes import ActiveRoutes, RouteTable

DEFAULT_POLL_INTERVAL = 1.0

logger = logging.getLogger("mocker.watcher")


class ConfigWatcher:
    """
    Reloads the route table when the configuration file changes.

    Example:
        routes = ActiveRoutes(load_config('mocker.yaml'))
        watcher = ConfigWatcher('mocker.yaml', routes)
        task = asyncio.create_task(watcher.run())
    """

    def __init__(
        self,
        path: Union[str, Path],
        routes: ActiveRoutes,
        interval: float = DEFAULT_POLL_INTERVAL,
        loader: Callable[[Union[str, Path]], RouteTable] = load_config
    ):
        """
        Initialize watcher.

        Args:
            path: Configuration file to watch
            routes: Holder whose table is replaced on change
            interval: Seconds between checks
            loader: Function loading a RouteTable from the path
        """
        self.path = Path(path)
        self.routes = routes
        self.interval = interval
        self.loader = loader
        self.reloads = 0
        self.failures = 0
        self._signature = self.signature()

    def signature(self) -> Optional[Tuple[int, int]]:
        """Current (size, mtime_ns) of the file, or None if it cannot be stat'ed."""
        return stat_signature(self.path)

    def check(self) -> bool:
        """
        Compare the file signature and reload on change.

        Returns:
            True if a new table was swapped in
        """
        current = self.signature()
        if current == self._signature:
            return False

        # Signature is stored before loading: a broken file is reported
        # once, not on every poll
        self._signature = current
        logger.info(f"Configuration changed: {self.path}")

        try:
            table = self.loader(self.path)
        except ConfigError as e:
            self.failures += 1
            logger.error(f"Reload failed, keeping previous routes: {e}")
            return False

        self.routes.swap(table)
        self.reloads += 1
        logger.info(f"Routes reloaded from {self.path} ({len(table)} routes)")
        return True

    async def run(self):
        """Poll until cancelled."""
        logger.debug(f"Watching {self.path} every {self.interval}s")
        while True:
            await asyncio.sleep(self.interval)
            try:
                await asyncio.to_thread(self.check)
            except Exception as e:
                self.failures += 1
                logger.exception(f"Configuration check failed, keeping previous routes: {e}")
