"""Comment and discussion schemas."""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional

from ..models.states import CommentStatus


class CommentCreate(BaseModel):
    """Schema for anchoring a comment to a line range (1-based, inclusive)."""
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    body: str = Field(..., min_length=1, max_length=10000)

    @model_validator(mode="after")
    def check_range(self) -> "CommentCreate":
        if self.end_line < self.start_line:
            raise ValueError("end_line must be greater than or equal to start_line")
        return self


class CommentResponse(BaseModel):
    """Schema for comment response."""
    id: str
    document_id: str
    author_id: str
    body: str
    anchor_start_line: int
    anchor_end_line: int
    anchor_text: str
    document_version_at_creation: int
    status: CommentStatus
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RejectResponse(BaseModel):
    ok: bool = True
    comment: CommentResponse


class DiscussionMessageCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=10000)


class DiscussionMessageResponse(BaseModel):
    id: int
    comment_id: str
    author_id: str
    message: str
    created_at: datetime

    class Config:
        from_attributes = True
