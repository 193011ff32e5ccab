"""Error taxonomy for ledger operations.

Every error raised to callers of the ledger controller is a LedgerError,
so presentation code can catch one type and show ``str(error)``.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""


class ValidationError(LedgerError):
    """Bad input: non-positive amount, missing description, duplicate name, etc."""


class NotFoundError(LedgerError):
    """The operation referenced an unknown transaction or category id."""


class ConflictError(LedgerError):
    """A record touched by this mutation is held by another in-flight mutation."""


class TransportError(LedgerError):
    """The persistence layer failed or timed out; nothing was applied."""
