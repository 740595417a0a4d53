"""Errors raised by the rating and statistics services."""


class StorageError(Exception):
    """A read or write the operation cannot proceed without has failed."""
    def __init__(self, message, details=None):
        super().__init__(message)
        self.user_message = message
        self.details = details


class InvalidTeamError(ValueError):
    """A team does not match the session's game mode."""
