"""Exception types raised by the FGT engine."""


class FGTError(Exception):
    """Base class for all errors raised by :mod:`fgtkde`."""


class InvalidConfiguration(FGTError, ValueError):
    """Raised when bandwidth, tolerance or the point sets are unusable.

    Detected while initializing an engine; the instance cannot be used
    afterwards.
    """


class DegenerateGridError(FGTError, RuntimeError):
    """Raised when no truncation order satisfies the error bound.

    This happens when the grid boxes are too large compared to the bandwidth
    (radius ratio ``>= 0.5``) or when the search exceeds the configured
    maximum order. The engine does not retry with a different grid.
    """


class NotComputedError(FGTError, RuntimeError):
    """Raised when density estimates are requested before ``compute()``."""
