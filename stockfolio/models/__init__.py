from .market import (
    AssetType,
    Currency,
    HistoricalDataPoint,
    HoldingReturn,
    MarketStatus,
    MarketType,
    PortfolioItem,
    PortfolioSummary,
    Quote,
    SearchResult,
    SourceKind,
)

__all__ = [
    "AssetType",
    "Currency",
    "HistoricalDataPoint",
    "HoldingReturn",
    "MarketStatus",
    "MarketType",
    "PortfolioItem",
    "PortfolioSummary",
    "Quote",
    "SearchResult",
    "SourceKind",
]
