class GameError(Exception):
    """Base class for errors that are not game outcomes."""


class EntityNotFoundError(GameError):
    """No game or run with this id (or code)."""


class GameActionError(GameError):
    """A lobby-level request that cannot be honoured (not host, wrong status, too few players)."""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.status_code = status_code
