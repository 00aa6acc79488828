"""
fault-recovery - bounded remediation for classified process failures.

This package receives an already classified failure (memory exhaustion,
file access, device faults, busy devices or text files, null references)
and runs a bounded sequence of recovery actions, reporting whether the
process fully recovered, fell back to a degraded resource, or failed.
"""

__version__ = "1.0.0"
__author__ = "fault-recovery"
