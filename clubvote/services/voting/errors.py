class VotingError(Exception):
    """Base class for errors raised by the STAR voting services."""


class InvalidScore(VotingError, ValueError):
    def __init__(self, score):
        super().__init__(f"Score must be an integer between 0 and 5, got {score!r}")
        self.score = score


class InvalidBallot(VotingError, ValueError):
    def __init__(self, field, message):
        super().__init__(f"{field}: {message}")
        self.field = field


class StorageUnavailable(VotingError):
    """The ballot store could not be read or written.

    Tallies abort when this is raised; callers never get partial results.
    """
