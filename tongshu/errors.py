"""
Error types raised by the chart engines.

Every failure is one of three kinds:
- InvalidInput: the caller asked for something outside the supported domain
- TableLookupMiss: a fixed table has no entry for the requested key
- SolverConvergenceError: an iterative astronomical solver failed to converge
"""


class TongshuError(Exception):
    """Base class for all chart computation errors."""


class InvalidInput(TongshuError, ValueError):
    """Raised before any computation when request fields are out of domain."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class TableLookupMiss(TongshuError, LookupError):
    """Raised when a fixed table has no entry for the requested key."""

    def __init__(self, table: str, key):
        self.table = table
        self.key = key
        super().__init__(f"no entry for {key!r} in {table}")


class SolverConvergenceError(TongshuError, RuntimeError):
    """Raised when a Newton iteration exceeds its iteration budget."""

    def __init__(self, target: str, iterations: int, residual: float):
        self.target = target
        self.iterations = iterations
        self.residual = residual
        super().__init__(
            f"{target} did not converge after {iterations} iterations "
            f"(residual {residual:.6f} deg)"
        )
