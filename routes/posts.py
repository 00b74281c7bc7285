"""Community posts: listing, authoring, likes and saves."""
import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pymongo.database import Database

import schemas
from database import get_db, populate, serialize_doc
from repositories import CommentRepository, PostRepository
from responses import PageParams, envelope, page_params, pagination
from security import ensure_owner, get_current_user, get_current_user_id, get_optional_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["Posts"])

# Posts written before ``is_published`` existed count as published
PUBLISHED = {"is_published": {"$ne": False}}
NEWEST = [("created_at", -1)]


def _has_entry(entries: List[Dict[str, Any]], user_id: Optional[str]) -> bool:
    return user_id is not None and any(entry.get("user_id") == user_id for entry in entries)


def present_posts(db: Database, docs: List[Dict[str, Any]], user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Serialize posts with their counts and the viewer's like/save state."""
    ids = [str(doc["_id"]) for doc in docs]
    comments = Counter(
        comment["post_id"]
        for comment in CommentRepository(db).collection.find({"post_id": {"$in": ids}}, {"post_id": 1})
    )
    posts = []
    for doc in docs:
        post = serialize_doc(doc)
        likes, saves = post.get("likes", []), post.get("saves", [])
        post.update(
            like_count=len(likes),
            save_count=len(saves),
            comment_count=comments.get(post["id"], 0),
            is_liked=_has_entry(likes, user_id),
            is_saved=_has_entry(saves, user_id),
        )
        posts.append(post)
    return populate(db, posts, "user_id", "user", ("name", "avatar", "bio"))


def _viewer_id(user: Optional[Dict[str, Any]]) -> Optional[str]:
    return str(user["_id"]) if user else None


def _post_page(db: Database, filters: Dict[str, Any], params: PageParams, user_id: Optional[str]):
    docs, total = PostRepository(db).page(filters, params.skip, params.limit, NEWEST)
    return envelope({
        "posts": present_posts(db, docs, user_id),
        "pagination": pagination(params, total, "totalPosts"),
    })


@router.get("")
def list_posts(
    category: Optional[str] = None,
    params: PageParams = Depends(page_params(10)),
    user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    filters = dict(PUBLISHED)
    if category and category.lower() != "all":
        filters["category"] = category
    return _post_page(db, filters, params, _viewer_id(user))


@router.get("/user/saved")
def saved_posts(
    params: PageParams = Depends(page_params(10)),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return _post_page(db, {**PUBLISHED, "saves.user_id": user_id}, params, user_id)


@router.get("/user/my-posts")
def my_posts(
    params: PageParams = Depends(page_params(10)),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return _post_page(db, {"user_id": user_id}, params, user_id)


@router.post("", status_code=201)
def create_post(
    body: schemas.PostCreate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    post = PostRepository(db).create(schemas.Post(**body.model_dump(), user_id=user_id))
    logger.info("Post %s created by user %s", post["_id"], user_id)
    return envelope({"post": present_posts(db, [post], user_id)[0]}, message="Post created successfully")


@router.put("/{post_id}/like")
def like_post(post_id: str, user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    post, liked = PostRepository(db).toggle(post_id, user_id, "likes")
    return envelope({"like_count": len(post["likes"]), "is_liked": liked})


@router.put("/{post_id}/save")
def save_post(post_id: str, user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    post, saved = PostRepository(db).toggle(post_id, user_id, "saves")
    return envelope({"save_count": len(post["saves"]), "is_saved": saved})


@router.get("/{post_id}")
def get_post(
    post_id: str,
    user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    post = PostRepository(db).get(post_id)
    return envelope({"post": present_posts(db, [post], _viewer_id(user))[0]})


@router.put("/{post_id}")
def update_post(
    post_id: str,
    body: schemas.PostUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    posts = PostRepository(db)
    ensure_owner(posts.get(post_id)["user_id"], user, "update this post")
    updated = posts.update(post_id, body.changes())
    return envelope({"post": present_posts(db, [updated], _viewer_id(user))[0]})


@router.delete("/{post_id}")
def delete_post(
    post_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    posts = PostRepository(db)
    ensure_owner(posts.get(post_id)["user_id"], user, "delete this post")
    posts.delete(post_id)
    removed = CommentRepository(db).delete_many({"post_id": post_id})
    logger.info("Post %s deleted with %d comments", post_id, removed)
    return envelope(message="Post deleted successfully")
