"""
Moderation endpoints. Every route requires an admin or superadmin token;
deleting a user requires superadmin.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pymongo.database import Database

import schemas
from database import get_db, populate, serialize_doc
from repositories import (
    AuthorRatingRepository,
    AuthorRepository,
    BookRepository,
    EventRepository,
    PostRepository,
    UserRepository,
)
from responses import PageParams, envelope, page_params, pagination
from routes.books import present_books, search_filter
from routes.events import present_events
from security import require_admin, require_superadmin, user_profile
from services import AuthorService, BookService, EventService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

NEWEST = [("created_at", -1)]


def approval_filter(status: str) -> Dict[str, Any]:
    if status == "pending":
        return {"is_approved": False}
    if status == "approved":
        return {"is_approved": True}
    return {}


def _approval_message(kind: str, approved: bool) -> str:
    return f"{kind} {'approved' if approved else 'rejected'} successfully"


# ------------------------
# Dashboard
# ------------------------
@router.get("/dashboard")
def dashboard(db: Database = Depends(get_db)):
    users, books, events = UserRepository(db), BookRepository(db), EventRepository(db)
    recent_users = [
        serialize_doc(doc)
        for doc in users.collection.find({"role": "user"}, {"name": 1, "avatar": 1, "created_at": 1})
        .sort("created_at", -1)
        .limit(5)
    ]
    recent_books = [serialize_doc(doc) for doc in books.find(sort=NEWEST, limit=5)]
    recent_events = [serialize_doc(doc) for doc in events.find(sort=NEWEST, limit=5)]
    return envelope({
        "stats": {
            "total_users": users.count({"role": "user"}),
            "total_books": books.count(),
            "total_events": events.count(),
            "total_posts": PostRepository(db).count(),
            "pending_books": books.count({"is_approved": False}),
            "pending_events": events.count({"is_approved": False}),
        },
        "recent": {
            "users": recent_users,
            "books": populate(db, recent_books, "added_by", "user", ("name",)),
            "events": populate(db, recent_events, "organizer_id", "user", ("name",)),
        },
    })


# ------------------------
# Users
# ------------------------
@router.get("/users")
def list_users(
    search: Optional[str] = None,
    params: PageParams = Depends(page_params(20)),
    db: Database = Depends(get_db),
):
    filters: Dict[str, Any] = {"role": {"$ne": "superadmin"}}
    if search:
        filters.update(search_filter(search, ["name", "phone", "email"]))
    docs, total = UserRepository(db).page(filters, params.skip, params.limit, NEWEST)
    return envelope({
        "users": [user_profile(doc) for doc in docs],
        "pagination": pagination(params, total, "totalUsers"),
    })


@router.put("/users/{user_id}")
def update_user(user_id: str, body: schemas.AdminUserUpdate, db: Database = Depends(get_db)):
    user = UserRepository(db).update(user_id, body.model_dump(exclude_none=True))
    logger.info("User %s updated by admin", user_id)
    return envelope({"user": user_profile(user)}, message="User updated successfully")


@router.delete("/users/{user_id}", dependencies=[Depends(require_superadmin)])
def delete_user(user_id: str, db: Database = Depends(get_db)):
    UserRepository(db).delete(user_id)
    logger.info("User %s deleted", user_id)
    return envelope(message="User deleted successfully")


# ------------------------
# Books
# ------------------------
@router.get("/books")
def list_books(
    status: str = "all",
    params: PageParams = Depends(page_params(20)),
    db: Database = Depends(get_db),
):
    docs, total = BookRepository(db).page(approval_filter(status), params.skip, params.limit, NEWEST)
    books = [serialize_doc(doc) for doc in docs]
    return envelope({
        "books": populate(db, books, "added_by", "user", ("name", "phone")),
        "pagination": pagination(params, total, "totalBooks"),
    })


@router.post("/books", status_code=201)
def create_book(
    body: schemas.BookCreate,
    admin: Dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
):
    book = BookService(db).create(body, added_by=str(admin["_id"]), approved=True)
    return envelope({"book": present_books(db, [book])[0]}, message="Book created successfully")


@router.put("/books/{book_id}")
def update_book(book_id: str, body: schemas.AdminBookUpdate, db: Database = Depends(get_db)):
    book = BookService(db).update(book_id, body.changes(), reset_approval=False)
    return envelope({"book": present_books(db, [book])[0]}, message="Book updated successfully")


@router.put("/books/{book_id}/status")
def update_book_status(book_id: str, body: schemas.ApprovalUpdate, db: Database = Depends(get_db)):
    book = BookService(db).set_approval(book_id, body.is_approved)
    return envelope({"book": present_books(db, [book])[0]}, message=_approval_message("Book", body.is_approved))


@router.delete("/books/{book_id}")
def delete_book(book_id: str, db: Database = Depends(get_db)):
    BookService(db).delete(book_id)
    return envelope(message="Book and associated reviews deleted successfully")


# ------------------------
# Events
# ------------------------
@router.get("/events")
def list_events(
    status: str = "all",
    params: PageParams = Depends(page_params(20)),
    db: Database = Depends(get_db),
):
    docs, total = EventRepository(db).page(approval_filter(status), params.skip, params.limit, NEWEST)
    return envelope({
        "events": present_events(db, docs, organizer_fields=("name", "phone")),
        "pagination": pagination(params, total, "totalEvents"),
    })


@router.post("/events", status_code=201)
def create_event(
    body: schemas.EventCreate,
    admin: Dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
):
    event = EventService(db).create(body, organizer_id=str(admin["_id"]), approved=True)
    return envelope({"event": present_events(db, [event])[0]}, message="Event created successfully")


@router.put("/events/{event_id}")
def update_event(event_id: str, body: schemas.AdminEventUpdate, db: Database = Depends(get_db)):
    event = EventService(db).update(event_id, body.changes(), reset_approval=False)
    return envelope({"event": present_events(db, [event])[0]}, message="Event updated successfully")


@router.put("/events/{event_id}/status")
def update_event_status(event_id: str, body: schemas.ApprovalUpdate, db: Database = Depends(get_db)):
    event = EventService(db).set_approval(event_id, body.is_approved)
    return envelope(
        {"event": present_events(db, [event])[0]}, message=_approval_message("Event", body.is_approved)
    )


@router.delete("/events/{event_id}")
def delete_event(event_id: str, db: Database = Depends(get_db)):
    EventService(db).delete(event_id)
    return envelope(message="Event deleted successfully")


# ------------------------
# Authors
# ------------------------
@router.get("/authors")
def list_authors(
    search: Optional[str] = None,
    params: PageParams = Depends(page_params(20)),
    db: Database = Depends(get_db),
):
    filters = search_filter(search, ["name", "bio"]) if search else {}
    docs, total = AuthorRepository(db).page(
        filters, params.skip, params.limit, [("book_count", -1), ("name", 1)]
    )
    return envelope({
        "authors": [serialize_doc(doc) for doc in docs],
        "pagination": pagination(params, total, "totalAuthors"),
    })


@router.post("/authors", status_code=201)
def create_author(body: schemas.AuthorCreate, db: Database = Depends(get_db)):
    author = AuthorService(db).create(body)
    return envelope({"author": serialize_doc(author)}, message="Author created successfully")


@router.get("/authors/list")
def author_options(db: Database = Depends(get_db)):
    docs = AuthorRepository(db).collection.find({}, {"name": 1, "book_count": 1}).sort("name", 1)
    return envelope({"authors": [serialize_doc(doc) for doc in docs]})


@router.get("/authors/{author_id}")
def get_author(author_id: str, db: Database = Depends(get_db)):
    author = AuthorRepository(db).get(author_id)
    books = BookRepository(db).find({"author_id": author_id}, sort=NEWEST)
    return envelope({
        "author": serialize_doc(author),
        "books": [serialize_doc(doc) for doc in books],
        "ratings_count": AuthorRatingRepository(db).count({"author_id": author_id}),
    })


@router.put("/authors/{author_id}")
def update_author(author_id: str, body: schemas.AuthorUpdate, db: Database = Depends(get_db)):
    author = AuthorService(db).update(author_id, body.changes())
    return envelope({"author": serialize_doc(author)}, message="Author updated successfully")


@router.delete("/authors/{author_id}")
def delete_author(author_id: str, db: Database = Depends(get_db)):
    AuthorService(db).delete(author_id)
    return envelope(message="Author deleted successfully")
