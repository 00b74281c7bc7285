"""Pytest configuration and shared fixtures."""
from datetime import timedelta

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

import schemas
from database import ensure_indexes, utcnow
from main import create_app
from repositories import EventRepository, UserRepository
from routes.auth import otp_store
from security import create_access_token, hash_password


@pytest.fixture
def db():
    database = mongomock.MongoClient()["wordingo_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    with TestClient(create_app(db)) as test_client:
        yield test_client


@pytest.fixture
def failing_book_writes(monkeypatch):
    """Make every ``update_one`` on the book collection fail like a dropped connection."""
    original = mongomock.Collection.update_one

    def update_one(self, filter, update, *args, **kwargs):
        if self.name == "book":
            raise PyMongoError("connection reset")
        return original(self, filter, update, *args, **kwargs)

    monkeypatch.setattr(mongomock.Collection, "update_one", update_one)


@pytest.fixture(autouse=True)
def clear_otp_store():
    otp_store.clear()
    yield
    otp_store.clear()


def make_user(db, phone: str, name: str = "Reader", role: str = "user", **extra):
    return UserRepository(db).create(schemas.User(name=name, phone=phone, role=role, **extra))


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user['_id'])})}"}


@pytest.fixture
def user(db):
    return make_user(db, "9000000001", name="Asha")


@pytest.fixture
def other_user(db):
    return make_user(db, "9000000002", name="Ravi")


@pytest.fixture
def admin(db):
    return make_user(
        db, "admin_admin", name="Admin", role="admin",
        username="admin", password_hash=hash_password("admin123"),
    )


@pytest.fixture
def superadmin(db):
    return make_user(
        db, "admin_superadmin", name="Super Admin", role="superadmin",
        username="superadmin", password_hash=hash_password("super123"),
    )


@pytest.fixture
def user_headers(user):
    return auth_headers(user)


@pytest.fixture
def other_headers(other_user):
    return auth_headers(other_user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def superadmin_headers(superadmin):
    return auth_headers(superadmin)


def book_payload(**overrides):
    payload = {
        "title": "The Quiet River",
        "author": "Meera Nair",
        "description": "A slow novel about a town that lives beside a river.",
        "category": "Fiction",
        "publish_year": 2019,
        "price": "₹399",
        "tags": ["River", " Family "],
    }
    payload.update(overrides)
    return payload


def event_payload(**overrides):
    date = utcnow() + timedelta(days=14)
    payload = {
        "title": "Poetry Night",
        "description": "An evening of open mic poetry readings.",
        "category": "Poetry",
        "date": date.isoformat(),
        "time": "18:00",
        "location": "Community Hall",
        "max_attendees": 2,
    }
    payload.update(overrides)
    return payload


def make_event(db, organizer_id: str, max_attendees: int = 2, approved: bool = True, **overrides):
    fields = {
        "title": "Poetry Night",
        "description": "An evening of open mic poetry readings.",
        "category": "Poetry",
        "date": utcnow() + timedelta(days=14),
        "time": "18:00",
        "location": "Community Hall",
        "max_attendees": max_attendees,
        "organizer_id": organizer_id,
        "is_approved": approved,
    }
    fields.update(overrides)
    return EventRepository(db).create(schemas.Event(**fields))
