"""Version history endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas import VersionResponse, VersionSummary
from ..services import DocumentService

router = APIRouter(prefix="/api/docs/{doc_id}/versions", tags=["versions"])


@router.get("", response_model=List[VersionSummary])
def list_versions(
    doc_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Version metadata in ascending order. Content is fetched per version."""
    return DocumentService(db).list_versions(doc_id, skip, limit)


@router.get("/{version_number}", response_model=VersionResponse)
def get_version(
    doc_id: str,
    version_number: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Full content of one version."""
    return DocumentService(db).get_version(doc_id, version_number)
