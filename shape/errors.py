"""Error types raised while building or encoding a circuit shape.

All of them are fatal: the pipeline either returns a complete artifact or
raises one of these.
"""

from __future__ import annotations


class ShapeError(ValueError):
    """Base class for circuit shape failures."""


class SchemaInconsistency(ShapeError):
    """An expression references something the constraint system never registered.

    Raised for unregistered column queries, surviving virtual selectors and
    constants missing from a frozen pool.
    """

    def __init__(self, message: str, *, var_class=None, column=None, rotation=None) -> None:
        self.var_class = var_class
        self.column = column
        self.rotation = rotation
        details = []
        if var_class is not None:
            details.append(f"class={var_class}")
        if column is not None:
            details.append(f"column={column}")
        if rotation is not None:
            details.append(f"rotation={rotation}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class IndexOverflow(ShapeError):
    """A count or index does not fit the integer width chosen for it."""

    def __init__(self, what: str, value: int, limit: int) -> None:
        self.what = what
        self.value = value
        self.limit = limit
        super().__init__(f"{what} = {value} exceeds limit {limit}")


class CollaboratorError(ShapeError):
    """The constraint-system build step failed.

    The original exception is kept unchanged on `cause` (and as __cause__).
    """

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"constraint system build failed: {cause!r}")
