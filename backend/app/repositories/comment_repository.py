"""Comment store: anchored comments and their discussion threads."""

import uuid
from datetime import datetime
from typing import List, Optional

from ..exceptions import CommentNotFoundError
from ..models import Comment, CommentStatus, DiscussionMessage
from .base import BaseRepository


class CommentRepository(BaseRepository[Comment]):
    """Repository for comments and discussion messages."""

    model_class = Comment
    not_found_error = CommentNotFoundError

    def create(
        self,
        document_id: str,
        author_id: str,
        body: str,
        start_line: int,
        end_line: int,
        anchor_text: str,
        document_version: int,
    ) -> Comment:
        comment = Comment(
            id=str(uuid.uuid4()),
            document_id=document_id,
            author_id=author_id,
            body=body,
            anchor_start_line=start_line,
            anchor_end_line=end_line,
            anchor_text=anchor_text,
            document_version_at_creation=document_version,
            status=CommentStatus.PENDING,
        )
        self.db.add(comment)
        self.db.flush()
        return comment

    def list_for_document(
        self, document_id: str, status: Optional[CommentStatus] = None
    ) -> List[Comment]:
        query = self.db.query(Comment).filter(Comment.document_id == document_id)
        if status is not None:
            query = query.filter(Comment.status == status)
        return query.order_by(Comment.anchor_start_line.asc(), Comment.created_at.asc()).all()

    def add_message(
        self, comment_id: str, author_id: str, message: str, created_at: datetime
    ) -> DiscussionMessage:
        entry = DiscussionMessage(
            comment_id=comment_id,
            author_id=author_id,
            message=message,
            created_at=created_at,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_messages(self, comment_id: str) -> List[DiscussionMessage]:
        return (
            self.db.query(DiscussionMessage)
            .filter(DiscussionMessage.comment_id == comment_id)
            .order_by(DiscussionMessage.created_at.asc(), DiscussionMessage.id.asc())
            .all()
        )
