"""Event listing, organizing and attendee registration."""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pymongo.database import Database

import registration
import schemas
from database import get_db, populate, serialize_doc, utcnow
from errors import NotFoundError
from repositories import EventRepository
from responses import PageParams, envelope, page_params, pagination
from routes.books import search_filter
from security import ensure_owner, get_current_user, get_current_user_id
from services import EventService

router = APIRouter(prefix="/events", tags=["Events"])

BY_DATE = [("date", 1), ("created_at", -1)]


def present_events(db: Database, docs: List[Dict[str, Any]], organizer_fields=("name", "avatar")) -> List[Dict[str, Any]]:
    events = [serialize_doc(registration.with_counts(doc)) for doc in docs]
    return populate(db, events, "organizer_id", "user", organizer_fields)


def _counts(event: Dict[str, Any]) -> Dict[str, int]:
    return {
        "attendee_count": registration.attendee_count(event),
        "available_spots": registration.available_spots(event),
    }


# ------------------------
# Public
# ------------------------
@router.get("")
def list_events(
    search: Optional[str] = None,
    category: Optional[str] = None,
    upcoming: bool = False,
    params: PageParams = Depends(page_params(12)),
    db: Database = Depends(get_db),
):
    filters: Dict[str, Any] = {"is_approved": True}
    if upcoming:
        filters["date"] = {"$gte": utcnow()}
    if search:
        filters.update(search_filter(search, ["title", "description", "location", "tags"]))
    if category and category.lower() != "all":
        filters["category"] = category

    docs, total = EventRepository(db).page(filters, params.skip, params.limit, BY_DATE)
    return envelope({
        "events": present_events(db, docs),
        "pagination": pagination(params, total, "totalEvents", with_nav=True),
    })


# ------------------------
# Authenticated
# ------------------------
@router.get("/user/my-events")
def my_events(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    docs = EventRepository(db).find({"organizer_id": user_id}, sort=[("date", 1)])
    return envelope({"events": present_events(db, docs)})


@router.get("/user/registered")
def registered_events(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    docs = EventRepository(db).find(
        {"attendees": {"$elemMatch": {"user_id": user_id, "status": registration.REGISTERED}}},
        sort=[("date", 1)],
    )
    return envelope({"events": present_events(db, docs)})


@router.get("/{event_id}")
def get_event(event_id: str, db: Database = Depends(get_db)):
    event = EventRepository(db).get(event_id)
    if not event.get("is_approved"):
        raise NotFoundError(message="Event not available")
    presented = present_events(db, [event], organizer_fields=("name", "avatar", "bio"))
    populate(db, presented[0]["attendees"], "user_id", "user", ("name", "avatar"))
    return envelope({"event": presented[0]})


@router.post("", status_code=201)
def create_event(
    body: schemas.EventCreate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    event = EventService(db).create(body, organizer_id=user_id)
    return envelope(
        {"event": present_events(db, [event])[0]},
        message="Event created successfully and submitted for approval",
    )


@router.put("/{event_id}")
def update_event(
    event_id: str,
    body: schemas.EventUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    event = EventRepository(db).get(event_id)
    ensure_owner(event["organizer_id"], user, "update this event")
    updated = EventService(db).update(event_id, body.changes())
    return envelope(
        {"event": present_events(db, [updated])[0]},
        message="Event updated and sent for re-approval",
    )


@router.post("/{event_id}/register")
def register_for_event(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    event = EventService(db).register(event_id, user_id)
    return envelope(_counts(event), message="Successfully registered for event")


@router.delete("/{event_id}/register")
def unregister_from_event(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    event = EventService(db).unregister(event_id, user_id)
    return envelope(_counts(event), message="Successfully unregistered from event")
