"""
watcher.py

Responsibility: Sets up a watchdog file system observer that monitors the
configuration file for out-of-band changes and logs them.
Does NOT: reload configuration, contain DNS business logic, or schedule jobs.
"""

from __future__ import annotations

import logging
import os

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Event handler
# ---------------------------------------------------------------------------


class _ConfigFileHandler(FileSystemEventHandler):
    """
    Watchdog event handler for the directory holding the config file.

    Configuration is loaded once at startup and stays immutable, so edits
    only take effect after a restart. The log tells the operator so.
    """

    def __init__(self, config_path: str) -> None:
        super().__init__()
        self._config_path = os.path.abspath(config_path)

    def _is_config(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(p and os.path.abspath(os.fsdecode(p)) == self._config_path for p in paths)

    def on_modified(self, event: FileSystemEvent) -> None:
        """
        Called by watchdog when a file in the watched directory is modified.

        Args:
            event: The file system event describing what changed.

        Returns:
            None
        """
        if self._is_config(event):
            logger.warning("Configuration file %s changed; restart to apply it.", self._config_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """
        Called when a file is renamed; editors often save through a rename.

        Args:
            event: The file system event describing the move.

        Returns:
            None
        """
        if self._is_config(event):
            logger.warning("Configuration file %s replaced; restart to apply it.", self._config_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if self._is_config(event):
            logger.warning("Configuration file %s was deleted; the running settings stay in effect.", self._config_path)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def create_observer(config_path: str) -> Observer:
    """
    Creates and returns a configured (but not yet started) watchdog Observer.

    Args:
        config_path: Path of the configuration file to watch. Its parent
                     directory is scheduled non-recursively.

    Returns:
        A configured watchdog Observer ready to be started.
    """
    watch_dir = os.path.dirname(os.path.abspath(config_path))
    observer = Observer()
    handler = _ConfigFileHandler(config_path)
    observer.schedule(handler, path=watch_dir, recursive=False)
    logger.info("File watcher configured for: %s", config_path)
    return observer
