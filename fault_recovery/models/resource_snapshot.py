"""
Resource snapshot model for process memory usage.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceSnapshot:
    """
    Point-in-time view of process memory against system memory.

    Attributes:
        process_resident_memory: Peak resident memory of this process in bytes
        total_system_memory: Total physical memory of the host in bytes
    """
    process_resident_memory: int
    total_system_memory: int

    def __post_init__(self):
        """Validate the snapshot after initialization."""
        if self.process_resident_memory < 0:
            raise ValueError("Process resident memory cannot be negative")

        if self.total_system_memory <= 0:
            raise ValueError("Total system memory must be positive")

    @property
    def usage_fraction(self) -> float:
        """Fraction of system memory used by this process."""
        return self.process_resident_memory / self.total_system_memory

    def get_summary_text(self) -> str:
        """Get human-readable usage summary."""
        process_mb = self.process_resident_memory / (1024 * 1024)
        total_mb = self.total_system_memory / (1024 * 1024)
        return f"{process_mb:.1f} MB of {total_mb:.1f} MB ({self.usage_fraction:.1%})"
