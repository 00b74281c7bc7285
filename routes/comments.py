from fastapi import APIRouter, Depends
from pymongo.database import Database

import schemas
from database import get_db, populate, serialize_doc
from repositories import CommentRepository, PostRepository
from responses import envelope
from security import get_current_user_id

router = APIRouter(prefix="/comments", tags=["Comments"])


def present_comments(db, docs):
    comments = [serialize_doc(doc) for doc in docs]
    return populate(db, comments, "author_id", "user", ("name", "avatar"))


@router.get("/{post_id}")
def list_comments(post_id: str, db: Database = Depends(get_db)):
    docs = CommentRepository(db).find({"post_id": post_id}, sort=[("created_at", -1)])
    return envelope({"comments": present_comments(db, docs)})


@router.post("/{post_id}", status_code=201)
def create_comment(
    post_id: str,
    body: schemas.CommentCreate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    PostRepository(db).get(post_id)
    comment = CommentRepository(db).create(
        schemas.Comment(content=body.content, post_id=post_id, author_id=user_id)
    )
    return envelope({"comment": present_comments(db, [comment])[0]})
