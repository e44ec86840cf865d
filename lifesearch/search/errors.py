from __future__ import annotations

"""Error taxonomy for the search engine."""


class SearchError(RuntimeError):
    """Base error for search failures."""
    pass


class ConfigurationError(SearchError):
    """Raised when search configuration is invalid."""
    pass


class IndexUnavailable(SearchError):
    """Raised when a strategy needs an index that has not been built."""
    pass


class StrategyExecutionError(SearchError):
    """Raised when a strategy fails while producing results."""
    pass


class StrategyTimeout(SearchError):
    """Raised when a strategy exceeds its time budget."""
    pass


class StrategyCancelled(SearchError):
    """Raised inside a strategy that observed cancellation."""
    pass
