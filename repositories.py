"""
Collection accessors (repository pattern).

Each repository wraps one MongoDB collection and returns raw documents.
Store-level failures are translated into application errors here:
unknown or malformed ids become ``NotFoundError`` and unique index
violations become ``DuplicateKeyError``.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo import errors as mongo_errors
from pymongo.database import Database

import schemas
from database import create_document, get_documents, to_object_id, utcnow
from errors import ConflictError, DuplicateKeyError, NotFoundError

logger = logging.getLogger(__name__)

Sort = Sequence[Tuple[str, int]]


class Repository:
    collection_name = ""
    resource = "Resource"
    duplicate_message = "Duplicate value"

    def __init__(self, db: Database) -> None:
        self.db = db
        self.collection = db[self.collection_name]

    def get(self, doc_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one({"_id": to_object_id(doc_id, self.resource)})
        if doc is None:
            raise NotFoundError(self.resource)
        return doc

    def find_one(self, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.collection.find_one(filter_dict)

    def find(
        self,
        filter_dict: Optional[Dict[str, Any]] = None,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return get_documents(self.db, self.collection_name, filter_dict, limit=limit, skip=skip, sort=sort)

    def count(self, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        return self.collection.count_documents(filter_dict or {})

    def page(
        self, filter_dict: Dict[str, Any], skip: int, limit: int, sort: Sort
    ) -> Tuple[List[Dict[str, Any]], int]:
        return self.find(filter_dict, sort=sort, skip=skip, limit=limit), self.count(filter_dict)

    def create(self, data: BaseModel) -> Dict[str, Any]:
        try:
            doc_id = create_document(self.db, self.collection_name, data)
        except mongo_errors.DuplicateKeyError as exc:
            logger.debug("Duplicate %s rejected: %s", self.resource, exc)
            raise DuplicateKeyError(self.duplicate_message) from exc
        return self.get(doc_id)

    def update(self, doc_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        changes = {**changes, "updated_at": utcnow()}
        try:
            doc = self.collection.find_one_and_update(
                {"_id": to_object_id(doc_id, self.resource)},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except mongo_errors.DuplicateKeyError as exc:
            logger.debug("Duplicate %s rejected: %s", self.resource, exc)
            raise DuplicateKeyError(self.duplicate_message) from exc
        if doc is None:
            raise NotFoundError(self.resource)
        return doc

    def delete(self, doc_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one_and_delete({"_id": to_object_id(doc_id, self.resource)})
        if doc is None:
            raise NotFoundError(self.resource)
        return doc

    def delete_many(self, filter_dict: Dict[str, Any]) -> int:
        return self.collection.delete_many(filter_dict).deleted_count

    def _ensure_unique(self, field: str, value: Any, message: str, exclude_id: Optional[str] = None) -> None:
        # Optional unique fields (isbn, email) are checked here rather than by
        # an index, since most documents leave them empty.
        if value in (None, ""):
            return
        query: Dict[str, Any] = {field: value}
        if exclude_id is not None:
            query["_id"] = {"$ne": to_object_id(exclude_id, self.resource)}
        if self.collection.find_one(query, {"_id": 1}) is not None:
            raise DuplicateKeyError(message)


def _toggle(entries: List[Dict[str, Any]], user_id: str) -> Tuple[List[Dict[str, Any]], bool]:
    """Remove ``user_id`` from ``entries`` if present, add it otherwise.

    Returns the new list and whether the user is now in it.
    """
    remaining = [entry for entry in entries if entry.get("user_id") != user_id]
    if len(remaining) != len(entries):
        return remaining, False
    remaining.append(schemas.Vote(user_id=user_id).model_dump())
    return remaining, True


class UserRepository(Repository):
    collection_name = "user"
    resource = "User"
    duplicate_message = "phone already exists"

    def find_by_phone(self, phone: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"phone": phone})

    def find_admin(self, username: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"username": username, "role": {"$in": list(schemas.ADMIN_ROLES)}})

    def create(self, data: BaseModel) -> Dict[str, Any]:
        self._ensure_unique("email", getattr(data, "email", None), "email already exists")
        return super().create(data)

    def update(self, doc_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        if "email" in changes:
            self._ensure_unique("email", changes["email"], "email already exists", exclude_id=doc_id)
        return super().update(doc_id, changes)


class AuthorRepository(Repository):
    collection_name = "author"
    resource = "Author"
    duplicate_message = "Author with this name already exists"

    def find_by_slug(self, slug: str) -> Dict[str, Any]:
        author = self.collection.find_one({"slug": slug})
        if author is None:
            raise NotFoundError(self.resource)
        return author

    def find_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"name": name})

    def update(self, doc_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        if "name" in changes:
            changes = {**changes, "slug": schemas.slugify(changes["name"])}
        return super().update(doc_id, changes)

    def add_genre(self, author_id: str, genre: str) -> None:
        self.collection.update_one(
            {"_id": to_object_id(author_id, self.resource)},
            {"$addToSet": {"genres": genre}, "$set": {"updated_at": utcnow()}},
        )


class BookRepository(Repository):
    collection_name = "book"
    resource = "Book"
    duplicate_message = "isbn already exists"

    def create(self, data: BaseModel) -> Dict[str, Any]:
        self._ensure_unique("isbn", getattr(data, "isbn", None), self.duplicate_message)
        return super().create(data)

    def update(self, doc_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        if "isbn" in changes:
            self._ensure_unique("isbn", changes["isbn"], self.duplicate_message, exclude_id=doc_id)
        return super().update(doc_id, changes)

    def categories(self) -> List[str]:
        return sorted(self.collection.distinct("category", {"is_approved": True}))

    def author_ids(self, filter_dict: Dict[str, Any]) -> List[str]:
        return [ref for ref in self.collection.distinct("author_id", filter_dict) if ref]


class BookReviewRepository(Repository):
    collection_name = "bookreview"
    resource = "Review"
    duplicate_message = "You have already reviewed this book"

    def create(self, data: BaseModel) -> Dict[str, Any]:
        if self.collection.find_one({"book_id": data.book_id, "user_id": data.user_id}, {"_id": 1}):
            raise DuplicateKeyError(self.duplicate_message)
        return super().create(data)

    def for_book(self, book_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        return self.find({"book_id": book_id}, sort=[("created_at", -1)], limit=limit)

    def vote(self, review_id: str, user_id: str, direction: str) -> Tuple[Dict[str, Any], bool]:
        """Toggle the user's vote in ``direction`` ("up" or "down").

        A vote in one direction always clears the user's vote in the other.
        Returns the updated review and whether the vote is now active.
        """
        review = self.get(review_id)
        same, other = ("upvotes", "downvotes") if direction == "up" else ("downvotes", "upvotes")
        cleared = [entry for entry in review.get(other, []) if entry.get("user_id") != user_id]
        toggled, active = _toggle(review.get(same, []), user_id)
        votes = {same: toggled, other: cleared}
        updated = self.update(
            review_id,
            {
                **votes,
                "upvote_count": len(votes["upvotes"]),
                "downvote_count": len(votes["downvotes"]),
            },
        )
        return updated, active


class AuthorRatingRepository(Repository):
    collection_name = "authorrating"
    resource = "Rating"
    duplicate_message = "You have already rated this author"

    def create(self, data: BaseModel) -> Dict[str, Any]:
        if self.find_for_user(data.author_id, data.user_id) is not None:
            raise DuplicateKeyError(self.duplicate_message)
        return super().create(data)

    def find_for_user(self, author_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"author_id": author_id, "user_id": user_id})

    def recent(self, author_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        return self.find({"author_id": author_id}, sort=[("created_at", -1)], limit=limit)


class EventRepository(Repository):
    collection_name = "event"
    resource = "Event"

    def update(
        self, doc_id: str, changes: Dict[str, Any], expected_version: Optional[int] = None
    ) -> Dict[str, Any]:
        """Apply ``changes`` and bump ``version`` so in-flight attendee writes re-check.

        With ``expected_version`` the write only applies to that version of the
        event and raises ``ConflictError`` when another request got there first.
        """
        query: Dict[str, Any] = {"_id": to_object_id(doc_id, self.resource)}
        if expected_version is not None:
            query["version"] = expected_version
        doc = self.collection.find_one_and_update(
            query,
            {"$set": {**changes, "updated_at": utcnow()}, "$inc": {"version": 1}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            return doc
        if expected_version is not None and self.collection.count_documents({"_id": query["_id"]}):
            raise ConflictError("Event was changed by another request, please try again")
        raise NotFoundError(self.resource)


class PostRepository(Repository):
    collection_name = "post"
    resource = "Post"

    def toggle(self, post_id: str, user_id: str, field: str) -> Tuple[Dict[str, Any], bool]:
        """Toggle the user's entry in ``field`` ("likes" or "saves")."""
        post = self.get(post_id)
        entries, active = _toggle(post.get(field, []), user_id)
        return self.update(post_id, {field: entries}), active


class CommentRepository(Repository):
    collection_name = "comment"
    resource = "Comment"
