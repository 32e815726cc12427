# --- Pydantic Models ---
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class ScoreRequest(BaseModel):
    user_id: int = Field(..., ge=1)
    game_id: int = Field(..., ge=1)
    score: int = Field(..., ge=0)
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator('title', 'description')
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None


class ReviewRequest(BaseModel):
    moderator_id: int = Field(..., ge=1)


class RejectRequest(ReviewRequest):
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator('reason')
    @classmethod
    def strip_reason(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None


class ModeratorAssignmentRequest(BaseModel):
    admin_id: int = Field(..., ge=1)
