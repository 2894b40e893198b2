"""Exception hierarchy shared by the orchestration core and library adapters."""

from __future__ import annotations


class SigrokCliError(Exception):
    """Base class for every error the front end raises on purpose."""


class ConfigurationError(SigrokCliError):
    """A user-supplied spec or option string is invalid.

    Reported at critical severity, which aborts the run.
    """


class LibraryError(SigrokCliError):
    """An external library call did not succeed."""


class AcquisitionError(LibraryError):
    """The acquisition library reported a failure."""


class DecoderError(LibraryError):
    """The decoder library reported a failure."""
