"""Version schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from ..models.states import VersionSource


class VersionSummary(BaseModel):
    """Version metadata without content, for history listings."""
    version_number: int
    document_id: str
    source: VersionSource
    originating_comment_id: Optional[str] = None
    summary: Optional[str] = None
    content_hash: str
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VersionResponse(VersionSummary):
    """Full version including the content snapshot."""
    content: str
