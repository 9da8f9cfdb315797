"""
Comment service: create, list and delete for the Comment aggregate.

Content is stored trimmed but otherwise as submitted; escaping happens on
the way out, so every projection returned from here is safe to drop into
an HTML page.  There is no update operation.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from commentboard.errors import InvalidInput
from commentboard.models import Comment
from commentboard.repository import Repository
from commentboard.schemas import CommentResponse
from commentboard.security import escape_html
from commentboard.services.base import MAX_ID, parse_positive_id, translate_errors

logger = logging.getLogger(__name__)

CONTENT_MAX = 5000


def _to_response(comment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        content=escape_html(comment.content),
        created_at=comment.created_at,
    )


@translate_errors("listing comments")
async def list_comments(db: AsyncSession) -> list[CommentResponse]:
    """Return every comment, newest (highest id) first."""
    rows = await Repository(db, Comment).find_all(
        columns=["id", "content", "created_at"],
        order_by=[Comment.id.desc()],
    )
    return [_to_response(row) for row in rows]


@translate_errors("creating a comment")
async def create_comment(db: AsyncSession, content) -> CommentResponse:
    if not content or not isinstance(content, str):
        raise InvalidInput("Comment content is required")
    cleaned = content.strip()
    if not cleaned:
        raise InvalidInput("Comment must not be empty")
    if len(cleaned) > CONTENT_MAX:
        raise InvalidInput(f"Comment is too long (max {CONTENT_MAX} characters)")

    comment = await Repository(db, Comment).insert(content=cleaned)
    logger.info("Created comment id=%s", comment.id)
    return _to_response(comment)


@translate_errors("deleting a comment")
async def delete_comment(db: AsyncSession, comment_id) -> bool:
    """Return True if a row was removed, False if *comment_id* matched nothing."""
    pk = parse_positive_id(comment_id, "comment id")
    if pk > MAX_ID:
        return False
    deleted = await Repository(db, Comment).delete(pk)
    if deleted:
        logger.info("Deleted comment id=%s", pk)
    return deleted > 0
