"""
Device accessibility probes and best-effort resets.

No descriptor outlives a call: each probe opens the device, acts and
closes it before returning.
"""

import logging
import os

try:
    import fcntl
    import termios
except ImportError:  # Windows
    fcntl = None
    termios = None


_NONBLOCK = getattr(os, 'O_NONBLOCK', 0)
_NOCTTY = getattr(os, 'O_NOCTTY', 0)


class DeviceProbe:
    """Checks and resets device paths."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def is_accessible(self, path: str) -> bool:
        """
        Check whether a device path exists and opens read-only without blocking.

        Args:
            path: Device path

        Returns:
            True if the path could be opened
        """
        if not os.path.exists(path):
            self.logger.debug(f"Device {path} does not exist")
            return False

        try:
            fd = os.open(path, os.O_RDONLY | _NONBLOCK | _NOCTTY)
        except OSError as e:
            self.logger.debug(f"Device {path} is not accessible: {e}")
            return False

        os.close(fd)
        return True

    def attempt_reset(self, path: str) -> bool:
        """
        Open a device read-write and toggle exclusive mode on and off.

        The toggle asks the driver to drop stale exclusive locks. It is
        best-effort: a successful open is reported as a successful reset
        even when the device rejects the mode ioctls.

        Args:
            path: Device path

        Returns:
            True if the device could be opened read-write
        """
        try:
            fd = os.open(path, os.O_RDWR | _NONBLOCK | _NOCTTY)
        except OSError as e:
            self.logger.debug(f"Device {path} could not be opened for reset: {e}")
            return False

        try:
            if fcntl is not None:
                for name in ('TIOCEXCL', 'TIOCNXCL'):
                    request = getattr(termios, name, None)
                    if request is None:
                        continue
                    try:
                        fcntl.ioctl(fd, request)
                    except OSError as e:
                        self.logger.debug(f"Mode toggle on {path} rejected: {e}")
        finally:
            os.close(fd)

        return True
