from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional

from ..errors import InvalidState


class ScoreStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    def transition(self, target: "ScoreStatus") -> "ScoreStatus":
        """Validate a moderation transition and return the target status.

        Only pending scores can be reviewed, and a review always lands on
        approved or rejected.
        """
        if self is not ScoreStatus.PENDING:
            raise InvalidState(f"Score is already {self.value}")
        if target is ScoreStatus.PENDING:
            raise InvalidState("A score cannot be moved back to pending")
        return target


class Score:
    __slots__ = (
        'id', 'user_id', 'game_id', 'value', 'submitted_at', 'title',
        'description', 'status', 'reviewed_by', 'reviewed_at', 'rejection_reason'
    )

    def __init__(self, data: Mapping[str, Any]):
        self.id = int(data['id'])
        self.user_id = int(data['user_id'])
        self.game_id = int(data['game_id'])
        self.value = int(data['value'])
        self.submitted_at: datetime = data['submitted_at']
        self.title: str = data.get('title') or ''
        self.description: Optional[str] = data.get('description')
        self.status = ScoreStatus(data.get('status') or ScoreStatus.PENDING.value)
        self.reviewed_by: Optional[int] = data.get('reviewed_by')
        self.reviewed_at: Optional[datetime] = data.get('reviewed_at')
        self.rejection_reason: Optional[str] = data.get('rejection_reason')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'game_id': self.game_id,
            'value': self.value,
            'submitted_at': self.submitted_at,
            'title': self.title,
            'description': self.description,
            'status': self.status.value,
            'reviewed_by': self.reviewed_by,
            'reviewed_at': self.reviewed_at,
            'rejection_reason': self.rejection_reason
        }

    def __repr__(self):
        return f"Score(id={self.id}, user_id={self.user_id}, game_id={self.game_id}, value={self.value}, status={self.status.value})"


class User:
    __slots__ = ('id', 'username', 'roles')

    def __init__(self, user_id: int, username: str, roles: Optional[List[str]] = None):
        self.id = user_id
        self.username = username
        self.roles = list(roles or [])


class Game:
    __slots__ = ('id', 'name', 'description', 'image_url')

    def __init__(self, game_id: int, name: str, description: Optional[str] = None, image_url: Optional[str] = None):
        self.id = game_id
        self.name = name
        self.description = description
        self.image_url = image_url


class GameModerator:
    __slots__ = ('id', 'game_id', 'user_id', 'username', 'assigned_at')

    def __init__(self, data: Mapping[str, Any]):
        self.id = int(data['id'])
        self.game_id = int(data['game_id'])
        self.user_id = int(data['user_id'])
        self.username: Optional[str] = data.get('username')
        self.assigned_at: datetime = data['assigned_at']


class LeaderboardEntry:
    __slots__ = ('user_id', 'user_name', 'score')

    def __init__(self, user_id: int, user_name: Optional[str], score: int):
        self.user_id = user_id
        self.user_name = user_name
        self.score = score

    def __eq__(self, other):
        if not isinstance(other, LeaderboardEntry):
            return NotImplemented
        return (self.user_id, self.user_name, self.score) == (other.user_id, other.user_name, other.score)

    def __repr__(self):
        return f"LeaderboardEntry(user_id={self.user_id}, user_name={self.user_name!r}, score={self.score})"


class ModerationResult:
    """Outcome of a review: the stored score plus whether the ranked index
    was brought up to date. A False cache_synced means the review is durable
    but the index will only catch up on its next rebuild."""
    __slots__ = ('score', 'cache_synced')

    def __init__(self, score: Score, cache_synced: bool = True):
        self.score = score
        self.cache_synced = cache_synced
