"""Documented exit codes for the sigrok-cli front end.

Exit codes follow UNIX conventions:
- 0: Success, including runs whose action failed in a contained way
- 1: Aborted by a critical diagnostic
- 2: Invalid command-line arguments (raised by argparse)

Usage:
    from sigrokcli.util.exit_codes import ExitCode
    return ExitCode.SUCCESS
"""

from __future__ import annotations


class ExitCode:
    """Exit code constants for sigrok-cli processes.

    Attributes:
        SUCCESS: The selected action completed, or failed without a critical diagnostic.
        CRITICAL_ABORT: A critical diagnostic terminated the run.
    """

    SUCCESS: int = 0
    CRITICAL_ABORT: int = 1
