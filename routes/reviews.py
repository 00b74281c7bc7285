from typing import Any, Dict

from fastapi import APIRouter, Depends
from pymongo.database import Database

import schemas
from database import get_db, populate
from repositories import BookReviewRepository
from responses import envelope
from routes.books import present_reviews
from security import ensure_owner, get_current_user, get_current_user_id
from services import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.get("/{review_id}")
def get_review(review_id: str, db: Database = Depends(get_db)):
    review = present_reviews(db, [BookReviewRepository(db).get(review_id)])
    populate(db, review, "book_id", "book", ("title", "author"))
    return envelope({"review": review[0]})


@router.put("/{review_id}")
def update_review(
    review_id: str,
    body: schemas.ReviewUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    review = BookReviewRepository(db).get(review_id)
    ensure_owner(review["user_id"], user, "update this review", allow_admin=False)
    updated = ReviewService(db).update(review_id, body.changes())
    return envelope({"review": present_reviews(db, [updated])[0]}, message="Review updated successfully")


@router.delete("/{review_id}")
def delete_review(
    review_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    review = BookReviewRepository(db).get(review_id)
    ensure_owner(review["user_id"], user, "delete this review", allow_admin=False)
    ReviewService(db).delete(review_id)
    return envelope(message="Review deleted successfully")


def _vote(db: Database, review_id: str, user_id: str, direction: str) -> Dict[str, Any]:
    review, active = ReviewService(db).vote(review_id, user_id, direction)
    state = "is_upvoted" if direction == "up" else "is_downvoted"
    return {
        "upvote_count": review.get("upvote_count", 0),
        "downvote_count": review.get("downvote_count", 0),
        state: active,
    }


@router.post("/{review_id}/upvote")
def upvote_review(
    review_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return envelope(_vote(db, review_id, user_id, "up"))


@router.post("/{review_id}/downvote")
def downvote_review(
    review_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return envelope(_vote(db, review_id, user_id, "down"))
