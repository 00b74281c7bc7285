"""
Write paths that keep derived state in step.

Services:
- Depend only on repositories and the maintainer modules
- Validate cross-field rules before writing
- Call the matching recompute after every write that affects it
- Return raw documents or raise application errors

Ownership and role checks happen in the handlers, which know the actor.
"""
import logging
from typing import Any, Dict, Tuple

from pymongo.database import Database

import ratings
import registration
import schemas
from database import utcnow
from errors import DeleteBlockedError, DuplicateKeyError, NotFoundError
from repositories import (
    AuthorRatingRepository,
    AuthorRepository,
    BookRepository,
    BookReviewRepository,
    EventRepository,
)
from validators import field_error, raise_for_errors, validate_author, validate_book, validate_event

logger = logging.getLogger(__name__)


class BookService:
    """Book writes, including the author link and ``book_count`` upkeep."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.books = BookRepository(db)
        self.reviews = BookReviewRepository(db)

    def create(self, data: schemas.BookCreate, added_by: str, approved: bool = False) -> Dict[str, Any]:
        fields = data.model_dump()
        raise_for_errors(validate_book(fields))
        author_id = ratings.resolve_or_create_author(self.db, data.author, data.category)
        book = self.books.create(
            schemas.Book(**fields, author_id=author_id, added_by=added_by, is_approved=approved)
        )
        logger.info("Book %s added by user %s (approved=%s)", book["_id"], added_by, approved)
        ratings.refresh_book_counts(self.db, author_id)
        return book

    def update(self, book_id: str, changes: Dict[str, Any], reset_approval: bool = True) -> Dict[str, Any]:
        book = self.books.get(book_id)
        merged = {**book, **changes}
        raise_for_errors(validate_book(merged))

        if ("author" in changes and changes["author"] != book.get("author")) or not book.get("author_id"):
            changes["author_id"] = ratings.resolve_or_create_author(
                self.db, merged["author"], merged["category"]
            )
        if reset_approval:
            changes["is_approved"] = False

        updated = self.books.update(book_id, changes)
        ratings.refresh_book_counts(self.db, book.get("author_id"), updated.get("author_id"))
        return updated

    def set_approval(self, book_id: str, approved: bool) -> Dict[str, Any]:
        book = self.books.update(book_id, {"is_approved": approved})
        logger.info("Book %s %s", book_id, "approved" if approved else "rejected")
        ratings.refresh_book_counts(self.db, book.get("author_id"))
        return book

    def delete(self, book_id: str) -> Tuple[Dict[str, Any], int]:
        book = self.books.delete(book_id)
        removed = self.reviews.delete_many({"book_id": book_id})
        logger.info("Book %s deleted with %d reviews", book_id, removed)
        ratings.refresh_book_counts(self.db, book.get("author_id"))
        return book, removed


class ReviewService:
    """Book review writes; every one of them refreshes the book's rating."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.books = BookRepository(db)
        self.reviews = BookReviewRepository(db)

    def add(self, book_id: str, user_id: str, data: schemas.ReviewCreate) -> Dict[str, Any]:
        self.books.get(book_id)
        review = self.reviews.create(
            schemas.BookReview(book_id=book_id, user_id=user_id, rating=data.rating, review=data.review)
        )
        ratings.recompute_book_rating(self.db, book_id)
        return review

    def update(self, review_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        review = self.reviews.get(review_id)
        if "review" in changes and changes["review"] != review.get("review"):
            changes["is_edited"] = True
            changes["edited_at"] = utcnow()
        updated = self.reviews.update(review_id, changes)
        if "rating" in changes:
            ratings.recompute_book_rating(self.db, review["book_id"])
        return updated

    def delete(self, review_id: str) -> Dict[str, Any]:
        review = self.reviews.delete(review_id)
        ratings.recompute_book_rating(self.db, review["book_id"])
        return review

    def vote(self, review_id: str, user_id: str, direction: str) -> Tuple[Dict[str, Any], bool]:
        return self.reviews.vote(review_id, user_id, direction)


class AuthorService:
    """Author records and author ratings."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.authors = AuthorRepository(db)
        self.ratings = AuthorRatingRepository(db)
        self.books = BookRepository(db)

    def rate(self, slug: str, user_id: str, data: schemas.AuthorRatingRequest) -> Dict[str, Any]:
        """Create the user's rating, or replace it when one already exists."""
        author = self.authors.find_by_slug(slug)
        author_id = str(author["_id"])
        existing = self.ratings.find_for_user(author_id, user_id)
        if existing is not None:
            rating = self.ratings.update(str(existing["_id"]), {"rating": data.rating, "review": data.review})
        else:
            rating = self.ratings.create(
                schemas.AuthorRating(author_id=author_id, user_id=user_id, rating=data.rating, review=data.review)
            )
        ratings.recompute_author_rating(self.db, author_id)
        return rating

    def remove_rating(self, slug: str, user_id: str) -> None:
        author = self.authors.find_by_slug(slug)
        author_id = str(author["_id"])
        existing = self.ratings.find_for_user(author_id, user_id)
        if existing is None:
            raise NotFoundError("Rating")
        self.ratings.delete(str(existing["_id"]))
        ratings.recompute_author_rating(self.db, author_id)

    def create(self, data: schemas.AuthorCreate) -> Dict[str, Any]:
        fields = data.model_dump()
        raise_for_errors(validate_author(fields))
        if self.authors.find_by_name(data.name) is not None:
            raise DuplicateKeyError(self.authors.duplicate_message)
        return self.authors.create(schemas.Author(**fields))

    def update(self, author_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        author = self.authors.get(author_id)
        raise_for_errors(validate_author({**author, **changes}))
        return self.authors.update(author_id, changes)

    def delete(self, author_id: str) -> Dict[str, Any]:
        author = self.authors.get(author_id)
        linked = self.books.count({"author_id": author_id})
        if linked > 0:
            raise DeleteBlockedError(
                f"Cannot delete author. They have {linked} book(s) associated. "
                "Please remove or reassign the books first."
            )
        removed = self.ratings.delete_many({"author_id": author_id})
        self.authors.delete(author_id)
        logger.info("Author %s deleted with %d ratings", author_id, removed)
        return author


class EventService:
    """Event writes and the registration entry points."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.events = EventRepository(db)

    def create(self, data: schemas.EventCreate, organizer_id: str, approved: bool = False) -> Dict[str, Any]:
        fields = data.model_dump()
        raise_for_errors(validate_event(fields))
        event = self.events.create(schemas.Event(**fields, organizer_id=organizer_id, is_approved=approved))
        logger.info("Event %s created by user %s (approved=%s)", event["_id"], organizer_id, approved)
        return event

    def update(self, event_id: str, changes: Dict[str, Any], reset_approval: bool = True) -> Dict[str, Any]:
        event = self.events.get(event_id)
        merged = {**event, **changes}
        errors = validate_event(merged, check_date="date" in changes)
        registered = registration.attendee_count(event)
        if "max_attendees" in changes and changes["max_attendees"] < registered:
            errors.append(
                field_error("max_attendees", f"{registered} attendees are already registered")
            )
        raise_for_errors(errors)

        if "price" in changes:
            changes["is_paid"] = changes["price"] > 0
        if reset_approval:
            changes["is_approved"] = False
        # The capacity check above only holds for the version it was made against
        return self.events.update(event_id, changes, expected_version=event.get("version"))

    def set_approval(self, event_id: str, approved: bool) -> Dict[str, Any]:
        event = self.events.update(event_id, {"is_approved": approved})
        logger.info("Event %s %s", event_id, "approved" if approved else "rejected")
        return event

    def delete(self, event_id: str) -> Dict[str, Any]:
        return self.events.delete(event_id)

    def register(self, event_id: str, user_id: str) -> Dict[str, Any]:
        return registration.register(self.db, event_id, user_id)

    def unregister(self, event_id: str, user_id: str) -> Dict[str, Any]:
        return registration.unregister(self.db, event_id, user_id)
