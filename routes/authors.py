from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pymongo.database import Database

import schemas
from database import get_db, populate, serialize_doc
from repositories import AuthorRatingRepository, AuthorRepository, BookRepository
from responses import PageParams, envelope, page_params, pagination
from routes.books import search_filter
from security import get_current_user_id
from services import AuthorService

router = APIRouter(prefix="/authors", tags=["Authors"])

AUTHOR_SORTS = {
    "rating": [("average_rating", -1), ("total_ratings", -1)],
    "books": [("book_count", -1)],
    "name": [("name", 1)],
}


@router.get("")
def list_authors(
    search: Optional[str] = None,
    sort_by: str = "name",
    params: PageParams = Depends(page_params(12)),
    db: Database = Depends(get_db),
):
    # Authors only show up publicly once they have an approved book
    filters: Dict[str, Any] = {"book_count": {"$gt": 0}}
    if search:
        filters.update(search_filter(search, ["name", "bio"]))

    docs, total = AuthorRepository(db).page(
        filters, params.skip, params.limit, AUTHOR_SORTS.get(sort_by, AUTHOR_SORTS["name"])
    )
    return envelope({
        "authors": [serialize_doc(doc) for doc in docs],
        "pagination": pagination(params, total, "totalAuthors"),
    })


@router.get("/{slug}")
def get_author(slug: str, db: Database = Depends(get_db)):
    author = AuthorRepository(db).find_by_slug(slug)
    author_id = str(author["_id"])
    books = BookRepository(db).find({"author_id": author_id, "is_approved": True}, sort=[("created_at", -1)])
    ratings = [serialize_doc(doc) for doc in AuthorRatingRepository(db).recent(author_id)]
    return envelope({
        "author": serialize_doc(author),
        "books": [serialize_doc(doc) for doc in books],
        "ratings": populate(db, ratings, "user_id", "user", ("name", "avatar")),
    })


@router.post("/{slug}/rate")
def rate_author(
    slug: str,
    body: schemas.AuthorRatingRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    rating = AuthorService(db).rate(slug, user_id, body)
    return envelope({"rating": serialize_doc(rating)}, message="Rating submitted successfully")


@router.delete("/{slug}/rate")
def remove_author_rating(
    slug: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    AuthorService(db).remove_rating(slug, user_id)
    return envelope(message="Rating removed successfully")


@router.get("/{slug}/my-rating")
def my_author_rating(
    slug: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    author = AuthorRepository(db).find_by_slug(slug)
    rating = AuthorRatingRepository(db).find_for_user(str(author["_id"]), user_id)
    return envelope({"rating": serialize_doc(rating) if rating else None})
