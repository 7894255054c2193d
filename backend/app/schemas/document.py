"""Document schemas."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime


class DocumentCreate(BaseModel):
    """Schema for creating a document."""
    title: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Q3 migration plan",
                    "content": "# Migration\n\n1. Freeze writes\n2. Copy data\n3. Switch reads\n",
                }
            ]
        }
    }


class DocumentContentUpdate(BaseModel):
    """Manual edit of a document's full content."""
    content: str = Field(..., min_length=1)
    summary: str | None = Field(default=None, max_length=500)


class DocumentResponse(BaseModel):
    """Schema for document response."""
    id: str
    owner_id: str
    title: str
    content: str
    content_hash: str
    line_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
