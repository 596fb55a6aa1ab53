"""Custom exceptions for the explorer backend.

All query-layer, gateway and submission exceptions live here to avoid
circular imports between the gateway, the engines and the HTTP layer.
"""


class ExplorerError(Exception):
    """Base exception for all explorer errors."""


class InvalidRequestError(ExplorerError):
    """Raised when caller-supplied addresses, limits or dates fail validation."""


class NotFoundError(ExplorerError):
    """Raised when a directly requested transaction or pool does not resolve."""


class DataConsistencyError(ExplorerError):
    """Raised when an arithmetic or grouping invariant is violated by stored data.

    Never retried. Financial sums are either exact or the request fails.
    """


class UpstreamUnavailableError(ExplorerError):
    """Raised when the database or the submission node fails to respond."""
