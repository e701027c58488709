"""Exceptions raised by the portfolio ledger and its collaborators."""


class PortfolioError(Exception):
    """Base class for all stock dashboard errors."""


class ValidationError(PortfolioError, ValueError):
    """Bad numeric input or an invalid quantity for a ledger operation."""


class NotFoundError(PortfolioError, LookupError):
    """No holding exists with the requested ID."""

    def __init__(self, holding_id: str):
        super().__init__(f"Holding not found: {holding_id}")
        self.holding_id: str = holding_id


class UpstreamError(PortfolioError):
    """Market data could not be fetched or the payload was malformed."""


class ImportFormatError(PortfolioError, ValueError):
    """An import file is not a valid portfolio export."""
