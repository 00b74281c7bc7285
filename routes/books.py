"""Book catalogue and the review endpoints nested under a book."""
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

import schemas
from database import get_db, populate, serialize_doc
from errors import NotFoundError
from repositories import BookRepository, BookReviewRepository
from responses import PageParams, envelope, page_params, pagination
from security import ensure_owner, get_current_user, get_current_user_id
from services import BookService, ReviewService

router = APIRouter(prefix="/books", tags=["Books"])

BOOK_SORTS = {
    "rating": [("average_rating", -1), ("total_reviews", -1)],
    "reviews": [("total_reviews", -1), ("average_rating", -1)],
    "title": [("title", 1)],
    "year": [("publish_year", -1)],
}
REVIEW_SORTS = {
    "oldest": [("created_at", 1)],
    "rating-high": [("rating", -1), ("created_at", -1)],
    "rating-low": [("rating", 1), ("created_at", -1)],
    "helpful": [("upvote_count", -1), ("created_at", -1)],
}
NEWEST = [("created_at", -1)]

AUTHOR_SUMMARY = ("name", "slug", "average_rating", "total_ratings", "image")
USER_SUMMARY = ("name", "avatar")


def search_filter(search: str, fields: List[str]) -> Dict[str, Any]:
    pattern = re.escape(search.strip())
    return {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in fields]}


def present_books(db: Database, docs: List[Dict[str, Any]], author_fields=AUTHOR_SUMMARY) -> List[Dict[str, Any]]:
    books = [serialize_doc(doc) for doc in docs]
    populate(db, books, "added_by", "user", USER_SUMMARY)
    populate(db, books, "author_id", "author", author_fields)
    return books


def present_reviews(db: Database, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    reviews = [serialize_doc(doc) for doc in docs]
    return populate(db, reviews, "user_id", "user", USER_SUMMARY)


# ------------------------
# Public
# ------------------------
@router.get("")
def list_books(
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort_by: Optional[str] = None,
    params: PageParams = Depends(page_params(12)),
    db: Database = Depends(get_db),
):
    filters: Dict[str, Any] = {"is_approved": True}
    if search:
        filters.update(search_filter(search, ["title", "author", "description", "tags"]))
    if category and category.lower() != "all":
        filters["category"] = category

    docs, total = BookRepository(db).page(filters, params.skip, params.limit, BOOK_SORTS.get(sort_by, NEWEST))
    return envelope({
        "books": present_books(db, docs),
        "pagination": pagination(params, total, "totalBooks", with_nav=True),
    })


@router.get("/categories")
def get_categories(db: Database = Depends(get_db)):
    return envelope({"categories": BookRepository(db).categories()})


@router.get("/trending")
def get_trending_books(limit: int = Query(10, ge=1, le=50), db: Database = Depends(get_db)):
    docs = BookRepository(db).find(
        {"is_approved": True},
        sort=[("total_reviews", -1), ("average_rating", -1)],
        limit=limit,
    )
    return envelope({"books": present_books(db, docs, author_fields=("name", "slug"))})


@router.get("/{book_id}")
def get_book(book_id: str, db: Database = Depends(get_db)):
    book = BookRepository(db).get(book_id)
    if not book.get("is_approved"):
        raise NotFoundError(message="Book not available")
    reviews = BookReviewRepository(db).for_book(book_id, limit=10)
    return envelope({
        "book": present_books(db, [book], author_fields=AUTHOR_SUMMARY + ("bio",))[0],
        "reviews": present_reviews(db, reviews),
    })


@router.get("/{book_id}/reviews")
def get_book_reviews(
    book_id: str,
    sort_by: str = "newest",
    params: PageParams = Depends(page_params(10)),
    db: Database = Depends(get_db),
):
    docs, total = BookReviewRepository(db).page(
        {"book_id": book_id}, params.skip, params.limit, REVIEW_SORTS.get(sort_by, NEWEST)
    )
    return envelope({
        "reviews": present_reviews(db, docs),
        "pagination": pagination(params, total, "totalReviews"),
    })


# ------------------------
# Authenticated
# ------------------------
@router.post("", status_code=201)
def add_book(
    body: schemas.BookCreate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    book = BookService(db).create(body, added_by=user_id)
    return envelope(
        {"book": present_books(db, [book], author_fields=("name", "slug"))[0]},
        message="Book submitted for review",
    )


@router.put("/{book_id}")
def update_book(
    book_id: str,
    body: schemas.BookUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    book = BookRepository(db).get(book_id)
    ensure_owner(book.get("added_by"), user, "update this book")
    updated = BookService(db).update(book_id, body.changes())
    return envelope(
        {"book": present_books(db, [updated], author_fields=("name", "slug"))[0]},
        message="Book updated and sent for re-approval",
    )


@router.post("/{book_id}/reviews", status_code=201)
def add_review(
    book_id: str,
    body: schemas.ReviewCreate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    review = ReviewService(db).add(book_id, user_id, body)
    return envelope({"review": present_reviews(db, [review])[0]}, message="Review added successfully")
