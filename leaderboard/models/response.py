from datetime import datetime
from pydantic import BaseModel
from typing import Dict, List, Literal, Optional

from .data import GameModerator, LeaderboardEntry as LeaderboardRow, Score


class LeaderboardEntry(BaseModel):
    user_id: int
    user_name: Optional[str]
    score: int
    rank: int


class LeaderboardResponse(BaseModel):
    game_id: int
    entries: List[LeaderboardEntry]

    @classmethod
    def from_rows(cls, game_id: int, rows: List[LeaderboardRow]) -> "LeaderboardResponse":
        return cls(
            game_id=game_id,
            entries=[
                LeaderboardEntry(user_id=row.user_id, user_name=row.user_name, score=row.score, rank=idx + 1)
                for idx, row in enumerate(rows)
            ]
        )


class TopPlayersResponse(BaseModel):
    start_date: datetime
    end_date: datetime
    entries: List[LeaderboardEntry]


class RankResponse(BaseModel):
    game_id: int
    user_id: int
    rank: int


class ScoreOut(BaseModel):
    id: int
    user_id: int
    game_id: int
    value: int
    submitted_at: datetime
    title: str
    description: Optional[str] = None
    status: Literal["pending", "approved", "rejected"]
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @classmethod
    def from_score(cls, score: Score) -> "ScoreOut":
        return cls(**score.to_dict())


class SubmitResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str
    score_id: int


class ModerationResponse(BaseModel):
    status: Literal["success", "degraded"] = "success"
    message: str
    score: ScoreOut


class GameModeratorOut(BaseModel):
    id: int
    game_id: int
    user_id: int
    username: Optional[str] = None
    assigned_at: datetime

    @classmethod
    def from_assignment(cls, assignment: GameModerator) -> "GameModeratorOut":
        return cls(
            id=assignment.id,
            game_id=assignment.game_id,
            user_id=assignment.user_id,
            username=assignment.username,
            assigned_at=assignment.assigned_at
        )


class CanModerateResponse(BaseModel):
    game_id: int
    user_id: int
    can_moderate: bool


class MessageResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"] = "healthy"
    uptime: float
    version: str
    index_backend: str
    components: Dict[str, str]
