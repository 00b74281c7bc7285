"""
Derived rating and count fields for books and authors.

``book.average_rating``/``total_reviews`` follow the reviews of the book,
``author.average_rating``/``total_ratings`` follow the ratings of the
author, and ``author.book_count`` follows the approved books linked to the
author. Nothing recomputes these on its own: every write path that touches
reviews, ratings or books calls the matching function here once its own
write has been acknowledged.

A failed recompute never undoes the write that triggered it. It raises
``DerivedStateError`` so the request reports a server error, and the next
successful recompute repairs the stale value.
"""
import logging
import math
from dataclasses import dataclass
from typing import Iterable

from pymongo.database import Database
from pymongo.errors import PyMongoError

import schemas
from database import to_object_id
from errors import DerivedStateError, DuplicateKeyError
from repositories import AuthorRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingSummary:
    average: float = 0.0
    count: int = 0


def round_rating(value: float, places: int = 1) -> float:
    """Round half away from zero: 4.25 -> 4.3, 3.34 -> 3.3."""
    factor = 10 ** places
    return math.copysign(math.floor(abs(value) * factor + 0.5), value) / factor


def summarize(ratings: Iterable[int]) -> RatingSummary:
    total = 0
    count = 0
    for rating in ratings:
        total += rating
        count += 1
    if count == 0:
        return RatingSummary()
    return RatingSummary(average=round_rating(total / count), count=count)


def _summarize_collection(db: Database, collection_name: str, field: str, target_id: str) -> RatingSummary:
    cursor = db[collection_name].find({field: target_id}, {"rating": 1})
    return summarize(doc["rating"] for doc in cursor)


def recompute_book_rating(db: Database, book_id: str) -> RatingSummary:
    try:
        summary = _summarize_collection(db, "bookreview", "book_id", book_id)
        db["book"].update_one(
            {"_id": to_object_id(book_id, "Book")},
            {"$set": {"average_rating": summary.average, "total_reviews": summary.count}},
        )
    except PyMongoError as exc:
        logger.error("Failed to recompute rating for book %s: %s", book_id, exc, exc_info=True)
        raise DerivedStateError("book", book_id) from exc
    logger.info("Book %s rating is now %.1f over %d reviews", book_id, summary.average, summary.count)
    return summary


def recompute_author_rating(db: Database, author_id: str) -> RatingSummary:
    try:
        summary = _summarize_collection(db, "authorrating", "author_id", author_id)
        db["author"].update_one(
            {"_id": to_object_id(author_id, "Author")},
            {"$set": {"average_rating": summary.average, "total_ratings": summary.count}},
        )
    except PyMongoError as exc:
        logger.error("Failed to recompute rating for author %s: %s", author_id, exc, exc_info=True)
        raise DerivedStateError("author", author_id) from exc
    logger.info("Author %s rating is now %.1f over %d ratings", author_id, summary.average, summary.count)
    return summary


def recompute_author_book_count(db: Database, author_id: str) -> int:
    try:
        count = db["book"].count_documents({"author_id": author_id, "is_approved": True})
        db["author"].update_one(
            {"_id": to_object_id(author_id, "Author")},
            {"$set": {"book_count": count}},
        )
    except PyMongoError as exc:
        logger.error("Failed to recompute book count for author %s: %s", author_id, exc, exc_info=True)
        raise DerivedStateError("author", author_id) from exc
    logger.info("Author %s now has %d approved books", author_id, count)
    return count


def resolve_or_create_author(db: Database, author_name: str, category: str) -> str:
    """Return the id of the author called ``author_name``, creating it if needed.

    A new author starts with ``genres=[category]``; an existing one gains
    ``category`` if it does not list it yet.
    """
    authors = AuthorRepository(db)
    name = author_name.strip()
    author = authors.find_by_name(name)
    if author is None:
        try:
            author = authors.create(schemas.Author(name=name, genres=[category]))
            logger.info("Created author %r for category %s", name, category)
            return str(author["_id"])
        except DuplicateKeyError:
            # Another request created the same author between our read and write
            author = authors.find_by_name(name)
            if author is None:
                raise
    if category not in author.get("genres", []):
        authors.add_genre(str(author["_id"]), category)
    return str(author["_id"])


def refresh_book_counts(db: Database, *author_ids: str) -> None:
    """Recompute ``book_count`` for each distinct, non-empty author id."""
    for author_id in dict.fromkeys(a for a in author_ids if a):
        recompute_author_book_count(db, author_id)
