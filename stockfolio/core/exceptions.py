"""Error taxonomy for upstream market-data access."""

from __future__ import annotations


class StockfolioError(Exception):
    """Base class for all stockfolio errors."""


class UpstreamUnavailable(StockfolioError):
    """A network call failed, timed out, or returned a non-success status.

    Recoverable: callers fall back to the next source tier or a cached value.
    """

    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"{source}: {detail}")


class InvalidQuoteData(StockfolioError):
    """An upstream answered successfully but the payload has no usable price."""

    def __init__(self, source: str, symbol: str, detail: str) -> None:
        self.source = source
        self.symbol = symbol
        self.detail = detail
        super().__init__(f"{source}: invalid quote for {symbol} ({detail})")


class QuoteUnavailable(StockfolioError):
    """Every configured source for a symbol failed."""

    def __init__(self, symbol: str, cause: BaseException | None = None) -> None:
        self.symbol = symbol
        self.cause = cause
        message = f"quote unavailable for {symbol}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class NoSearchResults(StockfolioError):
    """An upstream search answered with an explicit empty result."""

    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"no search results for {query!r}")
