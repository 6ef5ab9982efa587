"""Custom exceptions for the natal chart core."""


class NatalChartError(Exception):
    """Base exception for all chart errors."""
    pass


class InvalidInputFormat(NatalChartError):
    """Raised when a date, time or location string fails its fixed pattern."""
    pass


class LocationNotFound(NatalChartError):
    """Raised when no lookup source knows the requested location."""
    pass


class CalculationUnavailable(NatalChartError):
    """Raised when the position provider fails or returns unusable data."""
    pass
