class PledgeTrackerError(Exception):
    pass


class ValidationError(PledgeTrackerError):
    """Rejected input; raised before any state is touched."""


class PersistenceError(PledgeTrackerError):
    """The store refused a read or write. In-memory state is left as it was."""


class StaleWriteError(PersistenceError):
    """The stored collection changed since it was read; reload and retry."""
