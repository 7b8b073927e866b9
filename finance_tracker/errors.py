class ValidationError(ValueError):
    """Malformed input, e.g. a monthly summary without a month."""


class NotFoundError(LookupError):
    """A referenced user, category, budget or transaction does not exist for this user."""


class DependencyError(RuntimeError):
    """The ledger could not be read."""
