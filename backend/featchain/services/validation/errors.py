class SourceError(Exception):
    """An external lookup source failed to answer."""


class TransientSourceError(SourceError):
    """Network-level or overload failure; worth retrying."""


class SourceResponseError(SourceError):
    """The source rejected the query or sent something unreadable."""
