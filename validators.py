"""
Cross-field rules that a single Pydantic field constraint cannot express.

Each ``validate_*`` function takes the document as it would be stored and
returns a list of ``{"field": ..., "message": ...}`` entries. An empty list
means the document is acceptable; callers decide whether to raise.
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from database import naive_utc, utcnow
from errors import ValidationFailedError

FieldErrors = List[Dict[str, str]]

HTTP_URL = re.compile(r"^https?://.+")


def field_error(field: str, message: str) -> Dict[str, str]:
    return {"field": field, "message": message}


def raise_for_errors(errors: FieldErrors) -> None:
    if errors:
        raise ValidationFailedError(errors)


def validate_book(book: Mapping[str, Any], now: Optional[datetime] = None) -> FieldErrors:
    errors: FieldErrors = []
    year = book.get("publish_year")
    current_year = (now or utcnow()).year
    if year is not None and year > current_year:
        errors.append(field_error("publish_year", "Publish year cannot be in the future"))
    return errors


def validate_author(author: Mapping[str, Any]) -> FieldErrors:
    errors: FieldErrors = []
    website = author.get("website")
    if website and not HTTP_URL.match(website):
        errors.append(field_error("website", "Please provide a valid website URL"))
    return errors


def validate_event(
    event: Mapping[str, Any],
    now: Optional[datetime] = None,
    check_date: bool = True,
) -> FieldErrors:
    """Check an event document.

    ``check_date`` is turned off for edits that leave the date untouched, so
    an event that has already started can still have its description fixed.
    """
    errors: FieldErrors = []
    now = now or utcnow()
    date = naive_utc(event.get("date"))
    deadline = naive_utc(event.get("registration_deadline"))

    if check_date and date is not None and date <= now:
        errors.append(field_error("date", "Event date must be in the future"))
    if deadline is not None and date is not None and deadline > date:
        errors.append(
            field_error("registration_deadline", "Registration deadline must be before event date")
        )

    link = event.get("online_link")
    if event.get("is_online") and not link:
        errors.append(field_error("online_link", "Valid online link is required for online events"))
    elif link and not HTTP_URL.match(link):
        errors.append(field_error("online_link", "Valid URL required for online link"))
    return errors
