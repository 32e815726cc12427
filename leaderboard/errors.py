class LeaderboardError(Exception):
    """Base class for failures raised by the leaderboard engine"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(LeaderboardError):
    """A referenced user, game, score or leaderboard does not exist"""

    status_code = 404


class ValidationError(LeaderboardError):
    """Caller input violates a business rule"""

    status_code = 400


class InvalidState(LeaderboardError):
    """A score is not in the state the requested transition needs"""

    status_code = 409


class Forbidden(LeaderboardError):
    """The acting principal is not allowed to perform the operation"""

    status_code = 403
