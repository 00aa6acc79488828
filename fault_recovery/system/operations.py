"""
Process-wide system operations used by recovery.

Closing descriptors, removing IPC segments and terminating other processes
are destructive. Each of them is disabled unless the matching settings flag
is set, and strategies reach them only through this class so tests can
substitute a fake.
"""

import logging
import os
import shutil
import subprocess
from typing import List, Optional

import psutil

from fault_recovery.error_handling.exceptions import ProbeError


class SystemOperations:
    """
    Gatekeeper for destructive process-wide actions.
    """

    COMMAND_TIMEOUT = 10.0

    def __init__(self,
                 allow_close_descriptors: bool = False,
                 allow_ipc_release: bool = False,
                 allow_process_termination: bool = False):
        """
        Initialize system operations.

        Args:
            allow_close_descriptors: Permit closing this process's descriptors >= 3
            allow_ipc_release: Permit removing shared memory segments created by this process
            allow_process_termination: Permit killing processes that hold a contended device
        """
        self.logger = logging.getLogger(__name__)
        self.allow_close_descriptors = allow_close_descriptors
        self.allow_ipc_release = allow_ipc_release
        self.allow_process_termination = allow_process_termination

    @classmethod
    def from_settings(cls, settings) -> 'SystemOperations':
        """Build operations from RecoverySettings."""
        return cls(
            allow_close_descriptors=settings.allow_close_descriptors,
            allow_ipc_release=settings.allow_ipc_release,
            allow_process_termination=settings.allow_process_termination
        )

    def load_average(self) -> float:
        """
        Get the 1-minute system load average.

        Raises:
            ProbeError: Load average could not be read
        """
        try:
            return float(psutil.getloadavg()[0])
        except (OSError, AttributeError, psutil.Error) as e:
            raise ProbeError("Could not read load average", e)

    def close_descriptors(self, start: int = 3, stop: int = 1024) -> int:
        """
        Close every open descriptor in [start, stop).

        Returns:
            Number of descriptors closed
        """
        if not self.allow_close_descriptors:
            self.logger.debug("Descriptor cleanup disabled, skipping")
            return 0

        closed = 0
        for fd in range(max(3, start), stop):
            try:
                os.close(fd)
                closed += 1
            except OSError:
                continue

        self.logger.info(f"Closed {closed} file descriptors")
        return closed

    def release_ipc_segments(self) -> int:
        """
        Remove System V shared memory segments created by this process.

        Returns:
            Number of segments removed
        """
        if not self.allow_ipc_release:
            self.logger.debug("IPC release disabled, skipping")
            return 0

        if not (shutil.which("ipcs") and shutil.which("ipcrm")):
            self.logger.warning("ipcs/ipcrm not available, cannot release IPC segments")
            return 0

        released = 0
        for segment_id in self._find_owned_segments():
            if self._run_command(["ipcrm", "-m", segment_id]) is not None:
                released += 1

        self.logger.info(f"Released {released} shared memory segments")
        return released

    def terminate_holders(self, path: str) -> bool:
        """
        Kill processes holding a contended device open.

        Returns:
            True if fuser found and signalled at least one holder
        """
        if not self.allow_process_termination:
            self.logger.debug(f"Process termination disabled, not releasing {path}")
            return False

        if not shutil.which("fuser"):
            self.logger.warning("fuser not available, cannot release contended device")
            return False

        self.logger.warning(f"Terminating processes holding {path}")
        return self._run_command(["fuser", "-k", path]) is not None

    def _find_owned_segments(self) -> List[str]:
        """Parse `ipcs -m -p` for segments whose creator pid is this process."""
        output = self._run_command(["ipcs", "-m", "-p"])
        if not output:
            return []

        pid = str(os.getpid())
        segments = []
        for line in output.splitlines():
            fields = line.split()
            # shmid owner cpid lpid
            if len(fields) >= 3 and fields[0].isdigit() and fields[2] == pid:
                segments.append(fields[0])
        return segments

    def _run_command(self, command: List[str]) -> Optional[str]:
        """Run a command, returning stdout or None on failure."""
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.COMMAND_TIMEOUT,
                check=False
            )
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.warning(f"Command {' '.join(command)} failed: {e}")
            return None

        if completed.returncode != 0:
            self.logger.debug(f"Command {' '.join(command)} exited with {completed.returncode}")
            return None
        return completed.stdout
