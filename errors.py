"""
Failure taxonomy for store access and admin mutations.

Every failure is caught where the operation starts (manager method, public
page fetch, route) and turned into a notification or an HTTP error. Nothing
here is fatal to the process.
"""


class PortfolioError(Exception):
    """Base class for the errors raised by this service."""

    status_code = 500


class FetchFailure(PortfolioError):
    """A read against the document store failed (unreachable or bad query)."""

    status_code = 503


class StoreUnavailable(FetchFailure):
    """No database is configured or the client could not be created."""


class WriteFailure(PortfolioError):
    """A create, update or delete was rejected by the store."""

    status_code = 502


class ValidationFailure(PortfolioError):
    """A required form field was empty. Raised before any write is attempted."""

    status_code = 400

    def __init__(self, message, fields=None):
        super().__init__(message)
        self.fields = list(fields or [])
