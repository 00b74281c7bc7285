"""
Event attendee registration.

An attendee entry only moves ``registered`` -> ``cancelled``. Cancelled
entries stay on the event as history, and a user who registers again after
cancelling gets a new entry. ``attendee_count``, ``available_spots`` and
``is_full`` are derived from the attendee list on every read and never
stored.

Attendee writes are compare-and-set on the event's ``version``: the update
only applies if no other request changed the event since it was read.
Otherwise the event is read again and the rules are re-checked, so two
racing registrations cannot push the event past ``max_attendees``. Event
edits bump ``version`` too, so a capacity change made mid-registration is
seen by the retry.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pymongo.database import Database

import config
import schemas
from database import naive_utc, to_object_id, utcnow
from errors import ConflictError, NotFoundError, NotRegisteredError, RegistrationClosedError

logger = logging.getLogger(__name__)

REGISTERED = "registered"
ATTENDED = "attended"
CANCELLED = "cancelled"


def attendee_count(event: Dict[str, Any]) -> int:
    return sum(1 for attendee in event.get("attendees") or [] if attendee.get("status") == REGISTERED)


def available_spots(event: Dict[str, Any]) -> int:
    return event["max_attendees"] - attendee_count(event)


def is_full(event: Dict[str, Any]) -> bool:
    return attendee_count(event) >= event["max_attendees"]


def _registered_index(event: Dict[str, Any], user_id: str) -> Optional[int]:
    for index, attendee in enumerate(event.get("attendees") or []):
        if attendee.get("user_id") == user_id and attendee.get("status") == REGISTERED:
            return index
    return None


def is_registered(event: Dict[str, Any], user_id: str) -> bool:
    return _registered_index(event, user_id) is not None


def can_register(event: Dict[str, Any], user_id: str, now: Optional[datetime] = None) -> bool:
    now = naive_utc(now) or utcnow()
    if is_full(event):
        return False
    deadline = naive_utc(event.get("registration_deadline"))
    if deadline is not None and now > deadline:
        return False
    if now > naive_utc(event["date"]):
        return False
    return not is_registered(event, user_id)


def with_counts(event: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``event`` with the derived attendance fields filled in."""
    return {
        **event,
        "attendee_count": attendee_count(event),
        "available_spots": available_spots(event),
        "is_full": is_full(event),
    }


def _load(db: Database, event_id: str) -> Dict[str, Any]:
    event = db["event"].find_one({"_id": to_object_id(event_id, "Event")})
    if event is None:
        raise NotFoundError("Event")
    return event


def _compare_and_set(db: Database, event: Dict[str, Any], update: Dict[str, Any]) -> bool:
    version = event.get("version", 0)
    update.setdefault("$set", {})
    update["$set"]["version"] = version + 1
    update["$set"]["updated_at"] = utcnow()
    current = version if "version" in event else {"$exists": False}
    result = db["event"].update_one({"_id": event["_id"], "version": current}, update)
    return result.matched_count == 1


def register(
    db: Database,
    event_id: str,
    user_id: str,
    now: Optional[datetime] = None,
    retries: Optional[int] = None,
) -> Dict[str, Any]:
    """Append a ``registered`` entry for ``user_id`` and return the saved event."""
    attempts = retries or config.REGISTRATION_RETRIES
    for attempt in range(1, attempts + 1):
        event = _load(db, event_id)
        moment = naive_utc(now) or utcnow()
        if not can_register(event, user_id, moment):
            raise RegistrationClosedError()
        entry = schemas.Attendee(user_id=user_id, registered_at=moment).model_dump()
        if _compare_and_set(db, event, {"$push": {"attendees": entry}}):
            logger.info("User %s registered for event %s", user_id, event_id)
            return _load(db, event_id)
        logger.warning(
            "Event %s changed during registration of user %s (attempt %d/%d)",
            event_id, user_id, attempt, attempts,
        )
    raise RegistrationClosedError("Registration could not be completed, please try again")


def unregister(
    db: Database,
    event_id: str,
    user_id: str,
    retries: Optional[int] = None,
) -> Dict[str, Any]:
    """Mark the user's active entry ``cancelled`` and return the saved event."""
    attempts = retries or config.REGISTRATION_RETRIES
    for attempt in range(1, attempts + 1):
        event = _load(db, event_id)
        index = _registered_index(event, user_id)
        if index is None:
            raise NotRegisteredError()
        if _compare_and_set(db, event, {"$set": {f"attendees.{index}.status": CANCELLED}}):
            logger.info("User %s unregistered from event %s", user_id, event_id)
            return _load(db, event_id)
        logger.warning(
            "Event %s changed while unregistering user %s (attempt %d/%d)",
            event_id, user_id, attempt, attempts,
        )
    raise ConflictError("Cancellation could not be completed, please try again")
