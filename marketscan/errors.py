"""MarketScan — exception hierarchy.

Each unit of work (one symbol/timeframe, one trade) catches these at its own
boundary so a failure never aborts the rest of a cycle.
"""


class MarketScanError(Exception):
    """Base class for all MarketScan errors."""


class InsufficientDataError(MarketScanError):
    """Too few bars, or an indicator input is missing."""


class InvalidBarError(MarketScanError):
    """A fetched bar batch violates OHLC, price, or ordering invariants.

    The whole batch is rejected; bars are never repaired.
    """

    def __init__(self, message: str, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class MarketDataError(MarketScanError):
    """The market-data provider failed or returned an error payload."""

    def __init__(self, message: str, rate_limited: bool = False) -> None:
        super().__init__(message)
        self.rate_limited = rate_limited


class DecisionServiceError(MarketScanError):
    """The decision service could not be reached or returned garbage."""


class ProposalValidationError(MarketScanError):
    """A trade proposal is internally inconsistent.

    ``violations`` lists every broken invariant, in check order.
    """

    def __init__(self, violations: list[str]) -> None:
        super().__init__("; ".join(violations))
        self.violations = list(violations)


class LifecycleInvariantViolation(MarketScanError):
    """An illegal signal status transition was attempted."""
