"""Document and comment-anchoring endpoints."""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..models import CommentStatus
from ..schemas import (
    CommentCreate,
    CommentResponse,
    DocumentContentUpdate,
    DocumentCreate,
    DocumentResponse,
    VersionSummary,
)
from ..services import CommentService, DocumentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/docs", tags=["documents"])


@router.post("", response_model=DocumentResponse, status_code=201)
def create_document(
    request: DocumentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Upload a plan. The caller becomes its owner and version 1 is recorded."""
    return DocumentService(db).create_document(auth.user_id, request.title, request.content)


@router.get("", response_model=List[DocumentResponse])
def list_my_documents(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """List documents owned by the caller, most recently updated first."""
    return DocumentService(db).list_documents(auth.user_id, limit)


@router.get("/{doc_id}", response_model=DocumentResponse)
def get_document(
    doc_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return DocumentService(db).get_document(doc_id)


@router.put("/{doc_id}/content", response_model=VersionSummary)
def update_document_content(
    doc_id: str,
    request: DocumentContentUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Manual edit by the owner. Returns the new version's metadata."""
    return DocumentService(db).update_content(doc_id, auth.user_id, request.content, request.summary)


@router.post("/{doc_id}/comments", response_model=CommentResponse, status_code=201)
def create_comment(
    doc_id: str,
    request: CommentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Anchor a comment to a line range of the current document."""
    return CommentService(db).create_comment(
        doc_id, auth.user_id, request.start_line, request.end_line, request.body
    )


@router.get("/{doc_id}/comments", response_model=List[CommentResponse])
def list_comments(
    doc_id: str,
    status: Optional[CommentStatus] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return CommentService(db).list_comments(doc_id, status)
