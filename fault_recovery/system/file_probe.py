"""
Open probes for plain files.
"""

import logging
import os


class FileProbe:
    """Opens and immediately closes files to test their availability."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def can_read(self, path: str) -> bool:
        """Check whether a file opens for reading."""
        try:
            with open(path, 'rb'):
                return True
        except OSError as e:
            self.logger.debug(f"Cannot open {path} for reading: {e}")
            return False

    def open_read_write(self, path: str) -> None:
        """
        Open a file read-write without blocking, then close it.

        Raises:
            OSError: The open failed; errno tells why (ETXTBSY when busy)
        """
        fd = os.open(path, os.O_RDWR | getattr(os, 'O_NONBLOCK', 0))
        os.close(fd)
