import json

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from commentboard.database import get_db
from commentboard.errors import InvalidInput, NotFound
from commentboard.schemas import CommentCreate, CommentCreated, CommentDeleted, CommentResponse
from commentboard.services import comment_service

router = APIRouter(tags=["comments"])


async def read_comment_content(request: Request) -> CommentCreate:
    """
    Build the comment request struct from the request body.

    JSON bodies may be ``{"content": ...}`` or a bare JSON value; any other
    content type is taken as raw text.  ``content`` is None when nothing
    usable was sent; type checking is left to the service.
    """
    body = await request.body()
    if not body:
        return CommentCreate()
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise InvalidInput("Malformed JSON body") from exc
        if isinstance(payload, dict):
            return CommentCreate(content=payload.get("content"))
        return CommentCreate(content=payload)
    try:
        return CommentCreate(content=body.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise InvalidInput("Comment must be UTF-8 text") from exc

@router.get("/comments", response_model=list[CommentResponse])
async def list_comments(db: AsyncSession = Depends(get_db)):
    return await comment_service.list_comments(db)

@router.post("/comment", status_code=201, response_model=CommentCreated)
async def create_comment(
    data: CommentCreate = Depends(read_comment_content),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.create_comment(db, data.content)
    return CommentCreated(comment=comment)

@router.delete("/comment/{comment_id}", response_model=CommentDeleted)
async def delete_comment(comment_id: str, db: AsyncSession = Depends(get_db)):
    deleted = await comment_service.delete_comment(db, comment_id)
    if not deleted:
        raise NotFound("Comment not found")
    return CommentDeleted(message="Comment deleted")
