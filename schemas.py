"""
Database Schemas for Wordingo

Pydantic models define MongoDB collections. Class name lowercased is the
collection name. References to other documents are stored as string ids.
Request bodies accepted by the API live at the bottom of the module.
"""
import re
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from database import naive_utc, utcnow

BookCategory = Literal[
    "Fiction", "Non-Fiction", "Self-Help", "Finance", "History",
    "Poetry", "Biography", "Science", "Technology", "Other",
]
EventCategory = Literal[
    "Poetry", "Launch", "Workshop", "Discussion", "Reading", "Meetup", "Conference", "Other",
]
PostCategory = Literal["Story", "Poetry", "Article", "Review", "Discussion", "Other"]
Role = Literal["user", "admin", "superadmin"]
AttendeeStatus = Literal["registered", "attended", "cancelled"]

ADMIN_ROLES = ("admin", "superadmin")

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_SLUG_SEPARATORS = re.compile(r"[\s_-]+", re.ASCII)


def slugify(name: str) -> str:
    slug = _NON_SLUG_CHARS.sub("", name.lower())
    slug = _SLUG_SEPARATORS.sub("-", slug)
    return slug.strip("-")


def _lowercase_tags(tags: List[str]) -> List[str]:
    return [tag.strip().lower() for tag in tags if tag and tag.strip()]


class Document(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    # Update bodies may send null only for these fields, to clear them
    clearable: ClassVar[Tuple[str, ...]] = ()

    def changes(self) -> Dict[str, Any]:
        """Return the fields the client sent, dropping nulls the stored model cannot hold."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key in self.clearable
        }


# Embedded
class Image(Document):
    url: Optional[str] = None
    alt: Optional[str] = None


class BuyLink(Document):
    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class SocialLinks(Document):
    twitter: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    linkedin: Optional[str] = None


class Award(Document):
    name: str
    year: Optional[int] = None
    description: Optional[str] = None


class Vote(Document):
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)


class Attendee(Document):
    user_id: str
    registered_at: datetime = Field(default_factory=utcnow)
    status: AttendeeStatus = "registered"


# Users
class User(Document):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    avatar: str = "✍️"
    bio: str = "Writer | Storyteller | Dreamer"
    role: Role = "user"
    is_verified: bool = False
    last_active: datetime = Field(default_factory=utcnow)
    followers: List[str] = []
    following: List[str] = []
    # Admin accounts sign in with a username and password instead of OTP
    username: Optional[str] = None
    password_hash: Optional[str] = None


# Authors
class Author(Document):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = ""
    bio: str = Field("", max_length=2000)
    image: Optional[Image] = None
    birth_date: Optional[datetime] = None
    nationality: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = None
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    genres: List[BookCategory] = []
    awards: List[Award] = []
    average_rating: float = Field(0, ge=0, le=5)
    total_ratings: int = Field(0, ge=0)
    user_id: Optional[str] = None
    book_count: int = Field(0, ge=0)
    is_verified: bool = False

    @model_validator(mode="after")
    def derive_slug(self) -> "Author":
        self.slug = slugify(self.name)
        return self


class AuthorRating(Document):
    author_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(None, max_length=500)


# Books
class Book(Document):
    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=100)
    author_id: Optional[str] = None
    description: str = Field(..., min_length=1, max_length=2000)
    category: BookCategory = "Other"
    publish_year: int = Field(..., ge=1000)
    isbn: Optional[str] = None
    price: str = Field(..., min_length=1)
    images: List[Image] = []
    buy_links: List[BuyLink] = []
    added_by: str
    is_approved: bool = False
    average_rating: float = Field(0, ge=0, le=5)
    total_reviews: int = Field(0, ge=0)
    tags: List[str] = []

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, tags: List[str]) -> List[str]:
        return _lowercase_tags(tags)


class BookReview(Document):
    book_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    review: str = Field(..., min_length=1, max_length=1000)
    upvotes: List[Vote] = []
    downvotes: List[Vote] = []
    upvote_count: int = 0
    downvote_count: int = 0
    is_edited: bool = False
    edited_at: Optional[datetime] = None


# Events
class Event(Document):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    category: EventCategory = "Other"
    date: datetime
    time: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1, max_length=300)
    is_online: bool = False
    online_link: Optional[str] = None
    max_attendees: int = Field(..., ge=1, le=10000)
    attendees: List[Attendee] = []
    organizer_id: str
    image: Optional[Image] = None
    tags: List[str] = []
    price: float = Field(0, ge=0)
    is_paid: bool = False
    is_approved: bool = False
    registration_deadline: Optional[datetime] = None
    version: int = 0

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, tags: List[str]) -> List[str]:
        return _lowercase_tags(tags)

    @field_validator("date", "registration_deadline")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)

    @model_validator(mode="after")
    def derive_paid(self) -> "Event":
        self.is_paid = self.price > 0
        return self


# Community
class Post(Document):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=5000)
    category: PostCategory = "Other"
    user_id: str
    likes: List[Vote] = []
    saves: List[Vote] = []
    tags: List[str] = []
    is_published: bool = True

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, tags: List[str]) -> List[str]:
        return _lowercase_tags(tags)


class Comment(Document):
    content: str = Field(..., min_length=1, max_length=1000)
    post_id: str
    author_id: str


# ------------------------
# Request bodies
# ------------------------
class SendOtpRequest(Document):
    phone: str = Field(..., min_length=5, max_length=20)
    name: Optional[str] = None
    email: Optional[EmailStr] = None


class VerifyOtpRequest(Document):
    phone: str
    otp: str


class RefreshTokenRequest(Document):
    refresh_token: Optional[str] = None


class AdminLoginRequest(Document):
    username: str
    password: str


class ProfileUpdate(Document):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None


class AdminUserUpdate(Document):
    role: Optional[Role] = None
    is_verified: Optional[bool] = None


class ApprovalUpdate(Document):
    is_approved: bool


class BookCreate(Document):
    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=10, max_length=2000)
    category: BookCategory
    publish_year: int = Field(..., ge=1000)
    isbn: Optional[str] = None
    price: str = Field(..., min_length=1)
    images: List[Image] = []
    buy_links: List[BuyLink] = []
    tags: List[str] = []


class BookUpdate(Document):
    clearable = ("isbn",)

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    category: Optional[BookCategory] = None
    publish_year: Optional[int] = Field(None, ge=1000)
    isbn: Optional[str] = None
    price: Optional[str] = Field(None, min_length=1)
    images: Optional[List[Image]] = None
    buy_links: Optional[List[BuyLink]] = None
    tags: Optional[List[str]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        # Edit forms send tags as one comma separated string
        if isinstance(value, str):
            return [tag.strip() for tag in value.split(",") if tag.strip()]
        return value

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, tags: Optional[List[str]]) -> Optional[List[str]]:
        return None if tags is None else _lowercase_tags(tags)


class AdminBookUpdate(BookUpdate):
    is_approved: Optional[bool] = None


class ReviewCreate(Document):
    rating: int = Field(..., ge=1, le=5)
    review: str = Field(..., min_length=10, max_length=1000)


class ReviewUpdate(Document):
    rating: Optional[int] = Field(None, ge=1, le=5)
    review: Optional[str] = Field(None, min_length=10, max_length=1000)


class AuthorRatingRequest(Document):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(None, max_length=500)


class AuthorCreate(Document):
    name: str = Field(..., min_length=1, max_length=100)
    bio: str = Field("", max_length=2000)
    image: Optional[Image] = None
    birth_date: Optional[datetime] = None
    nationality: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = None
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    genres: List[BookCategory] = []
    awards: List[Award] = []
    is_verified: bool = False


class AuthorUpdate(Document):
    clearable = ("image", "birth_date", "nationality", "website")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    image: Optional[Image] = None
    birth_date: Optional[datetime] = None
    nationality: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = None
    social_links: Optional[SocialLinks] = None
    genres: Optional[List[BookCategory]] = None
    awards: Optional[List[Award]] = None
    is_verified: Optional[bool] = None


class EventCreate(Document):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    category: EventCategory
    date: datetime
    time: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1, max_length=300)
    is_online: bool = False
    online_link: Optional[str] = None
    max_attendees: int = Field(..., ge=1, le=10000)
    image: Optional[Image] = None
    tags: List[str] = []
    price: float = Field(0, ge=0)
    registration_deadline: Optional[datetime] = None

    @field_validator("date", "registration_deadline")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)


class EventUpdate(Document):
    clearable = ("online_link", "image", "registration_deadline")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    category: Optional[EventCategory] = None
    date: Optional[datetime] = None
    time: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = Field(None, min_length=1, max_length=300)
    is_online: Optional[bool] = None
    online_link: Optional[str] = None
    max_attendees: Optional[int] = Field(None, ge=1, le=10000)
    image: Optional[Image] = None
    tags: Optional[List[str]] = None
    price: Optional[float] = Field(None, ge=0)
    registration_deadline: Optional[datetime] = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, tags: Optional[List[str]]) -> Optional[List[str]]:
        return None if tags is None else _lowercase_tags(tags)

    @field_validator("date", "registration_deadline")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)


class AdminEventUpdate(EventUpdate):
    is_approved: Optional[bool] = None


class PostCreate(Document):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=10, max_length=5000)
    category: PostCategory
    tags: List[str] = []


class PostUpdate(Document):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=10, max_length=5000)
    category: Optional[PostCategory] = None
    tags: Optional[List[str]] = None
    is_published: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, tags: Optional[List[str]]) -> Optional[List[str]]:
        return None if tags is None else _lowercase_tags(tags)


class CommentCreate(Document):
    content: str = Field(..., min_length=1, max_length=1000)
