"""Typed errors raised at the edges of the analytics core."""


class ERPInsightsError(Exception):
    """Base class for errors the API layer knows how to report."""


class DataFetchError(ERPInsightsError):
    """Raw records could not be read from the store.

    Routers turn this into a 503 so the dashboard can show a toast and
    offer a retry; it never escapes as a bare 500.
    """

    def __init__(self, dataset: str, reason: str):
        self.dataset = dataset
        self.reason = reason
        super().__init__(f"Failed to load {dataset}: {reason}")


class MalformedValueError(ERPInsightsError, ValueError):
    """A numeric field could not be parsed."""

    def __init__(self, field: str, raw):
        self.field = field
        self.raw = raw
        super().__init__(f"{field}: {raw!r} is not a valid number")


class InvalidMonthError(ERPInsightsError, ValueError):
    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(f"Month must be in YYYY-MM form, got {raw!r}")


class NegativeValueError(MalformedValueError):
    """A quantity that can only be zero or positive came in below zero."""

    def __init__(self, field: str, raw):
        super().__init__(field, raw)
        self.args = (f"{field}: {raw!r} must not be negative",)
