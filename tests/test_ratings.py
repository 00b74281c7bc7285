"""Tests for the derived rating and count fields."""
import pytest

import ratings
import schemas
from errors import DerivedStateError, DuplicateKeyError
from repositories import (
    AuthorRatingRepository,
    AuthorRepository,
    BookRepository,
    BookReviewRepository,
)
from services import AuthorService, BookService, ReviewService

from conftest import book_payload


def add_book(db, user, approved=True, **overrides):
    body = schemas.BookCreate(**book_payload(**overrides))
    return BookService(db).create(body, added_by=str(user["_id"]), approved=approved)


def review(rating, text="A thoughtful and moving read."):
    return schemas.ReviewCreate(rating=rating, review=text)


class TestRounding:
    """Tests for round_rating and summarize."""

    @pytest.mark.parametrize(
        "value, expected",
        [(4.25, 4.3), (3.34, 3.3), (1.75, 1.8), (4.0, 4.0), (4.96, 5.0)],
    )
    def test_rounds_half_away_from_zero(self, value, expected):
        assert ratings.round_rating(value) == expected

    def test_summarize_empty_is_zero(self):
        """No ratings resets both fields to zero."""
        assert ratings.summarize([]) == ratings.RatingSummary(0.0, 0)

    def test_summarize_mean(self):
        assert ratings.summarize([5, 4, 4]) == ratings.RatingSummary(4.3, 3)


class TestBookRating:
    """Book average and review count follow the reviews."""

    def test_tracks_create_update_delete(self, db, user, other_user):
        book_id = str(add_book(db, user)["_id"])
        service = ReviewService(db)

        first = service.add(book_id, str(user["_id"]), review(5))
        service.add(book_id, str(other_user["_id"]), review(2))
        book = BookRepository(db).get(book_id)
        assert book["average_rating"] == 3.5
        assert book["total_reviews"] == 2

        service.update(str(first["_id"]), {"rating": 4})
        assert BookRepository(db).get(book_id)["average_rating"] == 3.0

        service.delete(str(first["_id"]))
        book = BookRepository(db).get(book_id)
        assert book["average_rating"] == 2.0
        assert book["total_reviews"] == 1

    def test_last_review_deleted_resets_to_zero(self, db, user):
        book_id = str(add_book(db, user)["_id"])
        created = ReviewService(db).add(book_id, str(user["_id"]), review(4))
        ReviewService(db).delete(str(created["_id"]))

        book = BookRepository(db).get(book_id)
        assert book["average_rating"] == 0
        assert book["total_reviews"] == 0

    def test_recompute_is_idempotent(self, db, user, other_user):
        book_id = str(add_book(db, user)["_id"])
        ReviewService(db).add(book_id, str(user["_id"]), review(5))
        ReviewService(db).add(book_id, str(other_user["_id"]), review(4))

        first = ratings.recompute_book_rating(db, book_id)
        second = ratings.recompute_book_rating(db, book_id)
        assert first == second == ratings.RatingSummary(4.5, 2)

    def test_second_review_by_same_user_rejected(self, db, user):
        book_id = str(add_book(db, user)["_id"])
        ReviewService(db).add(book_id, str(user["_id"]), review(5))

        with pytest.raises(DuplicateKeyError):
            ReviewService(db).add(book_id, str(user["_id"]), review(1))
        assert BookReviewRepository(db).count({"book_id": book_id}) == 1
        assert BookRepository(db).get(book_id)["average_rating"] == 5.0

    def test_failed_recompute_surfaces_and_keeps_review(self, db, user, failing_book_writes):
        book_id = str(add_book(db, user)["_id"])

        with pytest.raises(DerivedStateError) as excinfo:
            ReviewService(db).add(book_id, str(user["_id"]), review(4))

        assert excinfo.value.status_code == 500
        assert excinfo.value.resource_id == book_id
        assert BookReviewRepository(db).count({"book_id": book_id}) == 1
        assert BookRepository(db).get(book_id)["total_reviews"] == 0

    def test_text_edit_marks_review_edited(self, db, user):
        book_id = str(add_book(db, user)["_id"])
        created = ReviewService(db).add(book_id, str(user["_id"]), review(3))

        updated = ReviewService(db).update(
            str(created["_id"]), {"review": "Better on a second reading, honestly."}
        )
        assert updated["is_edited"] is True
        assert updated["edited_at"] is not None


class TestAuthorRating:
    """Author average and rating count follow the author ratings."""

    def test_rate_then_rerate_keeps_one_rating(self, db, user, other_user):
        author = AuthorRepository(db).get(ratings.resolve_or_create_author(db, "Meera Nair", "Fiction"))
        service = AuthorService(db)

        service.rate(author["slug"], str(user["_id"]), schemas.AuthorRatingRequest(rating=5))
        service.rate(author["slug"], str(other_user["_id"]), schemas.AuthorRatingRequest(rating=3))
        service.rate(author["slug"], str(user["_id"]), schemas.AuthorRatingRequest(rating=4))

        refreshed = AuthorRepository(db).get(str(author["_id"]))
        assert refreshed["average_rating"] == 3.5
        assert refreshed["total_ratings"] == 2

    def test_remove_rating_recomputes(self, db, user):
        author = AuthorRepository(db).get(ratings.resolve_or_create_author(db, "Meera Nair", "Fiction"))
        AuthorService(db).rate(author["slug"], str(user["_id"]), schemas.AuthorRatingRequest(rating=5))
        AuthorService(db).remove_rating(author["slug"], str(user["_id"]))

        refreshed = AuthorRepository(db).get(str(author["_id"]))
        assert refreshed["average_rating"] == 0
        assert refreshed["total_ratings"] == 0

    def test_duplicate_rating_create_rejected(self, db, user):
        author_id = ratings.resolve_or_create_author(db, "Meera Nair", "Fiction")
        repo = AuthorRatingRepository(db)
        repo.create(schemas.AuthorRating(author_id=author_id, user_id=str(user["_id"]), rating=4))

        with pytest.raises(DuplicateKeyError):
            repo.create(schemas.AuthorRating(author_id=author_id, user_id=str(user["_id"]), rating=2))


class TestAuthorLink:
    """Books resolve their author by name and keep book_count current."""

    def test_resolve_creates_once_and_collects_genres(self, db):
        first = ratings.resolve_or_create_author(db, "Meera Nair", "Fiction")
        second = ratings.resolve_or_create_author(db, "  Meera Nair ", "Poetry")

        assert first == second
        author = AuthorRepository(db).get(first)
        assert author["slug"] == "meera-nair"
        assert author["genres"] == ["Fiction", "Poetry"]

    def test_book_count_only_counts_approved_books(self, db, user):
        add_book(db, user, approved=True)
        pending = add_book(db, user, approved=False, title="Second Book")
        author = AuthorRepository(db).find_by_name("Meera Nair")
        assert author["book_count"] == 1

        BookService(db).set_approval(str(pending["_id"]), True)
        assert AuthorRepository(db).get(str(author["_id"]))["book_count"] == 2

    def test_changing_author_refreshes_both_counts(self, db, user):
        book = add_book(db, user)
        old_author = AuthorRepository(db).find_by_name("Meera Nair")

        BookService(db).update(str(book["_id"]), {"author": "Kiran Rao"}, reset_approval=False)

        new_author = AuthorRepository(db).find_by_name("Kiran Rao")
        assert AuthorRepository(db).get(str(old_author["_id"]))["book_count"] == 0
        assert new_author["book_count"] == 1
        assert BookRepository(db).get(str(book["_id"]))["author_id"] == str(new_author["_id"])

    def test_deleting_book_removes_reviews_and_refreshes_count(self, db, user):
        book = add_book(db, user)
        ReviewService(db).add(str(book["_id"]), str(user["_id"]), review(5))

        _, removed = BookService(db).delete(str(book["_id"]))

        assert removed == 1
        assert AuthorRepository(db).find_by_name("Meera Nair")["book_count"] == 0


class TestSlugs:
    """Tests for slug derivation."""

    @pytest.mark.parametrize(
        "name, slug",
        [
            ("J.K. Rowling!!", "jk-rowling"),
            ("  Multiple   Spaces  ", "multiple-spaces"),
            ("Ngũgĩ wa Thiong'o", "ngg-wa-thiongo"),
            ("snake_case-name", "snake-case-name"),
        ],
    )
    def test_slugify(self, name, slug):
        assert schemas.slugify(name) == slug

    def test_author_slug_follows_name(self, db):
        author_id = ratings.resolve_or_create_author(db, "Meera Nair", "Fiction")
        updated = AuthorRepository(db).update(author_id, {"name": "Meera K. Nair"})
        assert updated["slug"] == "meera-k-nair"
