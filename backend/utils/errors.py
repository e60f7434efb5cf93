# utils/errors.py
"""
Error taxonomy
--------------
Only input-shape problems and failed rebuilds are errors. Missing data
(one year of reports, empty scope, no co-occurrences) is never raised;
those cases return empty results.
"""


class PortalError(Exception):
    """Base class for errors raised by the analytics core."""


class InputError(PortalError, ValueError):
    """A mandatory request parameter is missing or empty."""

    def __init__(self, param, message=None):
        self.param = param
        super().__init__(message or f"'{param}' is required")


class RebuildError(PortalError):
    """Index rebuild failed; the previously published snapshot is still served."""


class CorpusLoadError(PortalError):
    """Corpus files are missing or unreadable."""
