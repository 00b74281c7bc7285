"""HTTP tests for /api/posts and /api/comments."""
import pytest


def post_payload(**overrides):
    payload = {
        "title": "Monsoon",
        "content": "Rain on the tin roof, and the whole street goes quiet.",
        "category": "Poetry",
        "tags": ["Rain"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def post(client, user_headers):
    response = client.post("/api/posts", json=post_payload(), headers=user_headers)
    assert response.status_code == 201
    return response.json()["data"]["post"]


class TestPosts:
    """Tests for the post endpoints."""

    def test_create_post(self, post):
        assert post["user_id"]["name"] == "Asha"
        assert post["tags"] == ["rain"]
        assert post["like_count"] == 0
        assert post["comment_count"] == 0
        assert post["is_liked"] is False

    def test_like_and_save_toggle(self, client, post, other_headers):
        liked = client.put(f"/api/posts/{post['id']}/like", headers=other_headers).json()["data"]
        assert liked == {"like_count": 1, "is_liked": True}
        saved = client.put(f"/api/posts/{post['id']}/save", headers=other_headers).json()["data"]
        assert saved == {"save_count": 1, "is_saved": True}

        viewed = client.get(f"/api/posts/{post['id']}", headers=other_headers).json()["data"]["post"]
        assert viewed["is_liked"] is True
        assert viewed["is_saved"] is True
        anonymous = client.get(f"/api/posts/{post['id']}").json()["data"]["post"]
        assert anonymous["is_liked"] is False

        unliked = client.put(f"/api/posts/{post['id']}/like", headers=other_headers).json()["data"]
        assert unliked == {"like_count": 0, "is_liked": False}

    def test_saved_and_my_posts(self, client, post, user_headers, other_headers):
        client.put(f"/api/posts/{post['id']}/save", headers=other_headers)

        saved = client.get("/api/posts/user/saved", headers=other_headers).json()["data"]
        assert [item["id"] for item in saved["posts"]] == [post["id"]]
        assert saved["pagination"]["totalPosts"] == 1

        mine = client.get("/api/posts/user/my-posts", headers=other_headers).json()["data"]
        assert mine["posts"] == []

    def test_unpublished_posts_are_not_listed(self, client, post, user_headers):
        client.put(f"/api/posts/{post['id']}", json={"is_published": False}, headers=user_headers)
        assert client.get("/api/posts").json()["data"]["posts"] == []

    def test_update_lowercases_tags(self, client, post, user_headers):
        response = client.put(f"/api/posts/{post['id']}", json={"tags": ["Monsoon", " Haiku "]}, headers=user_headers)
        assert response.json()["data"]["post"]["tags"] == ["monsoon", "haiku"]

    def test_only_author_updates(self, client, post, other_headers):
        response = client.put(f"/api/posts/{post['id']}", json={"title": "Mine"}, headers=other_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to update this post"

    def test_delete_removes_comments(self, client, db, post, user_headers, other_headers):
        client.post(f"/api/comments/{post['id']}", json={"content": "Beautiful."}, headers=other_headers)

        assert client.delete(f"/api/posts/{post['id']}", headers=other_headers).status_code == 403
        assert client.delete(f"/api/posts/{post['id']}", headers=user_headers).status_code == 200
        assert db["comment"].count_documents({"post_id": post["id"]}) == 0
        assert client.get(f"/api/posts/{post['id']}").status_code == 404


class TestComments:
    """Tests for the comment endpoints."""

    def test_comment_flow(self, client, post, other_headers):
        response = client.post(f"/api/comments/{post['id']}", json={"content": "Beautiful."}, headers=other_headers)
        assert response.status_code == 201
        assert response.json()["data"]["comment"]["author_id"]["name"] == "Ravi"

        comments = client.get(f"/api/comments/{post['id']}").json()["data"]["comments"]
        assert [comment["content"] for comment in comments] == ["Beautiful."]
        assert client.get(f"/api/posts/{post['id']}").json()["data"]["post"]["comment_count"] == 1

    def test_comment_on_missing_post(self, client, user_headers):
        response = client.post(
            "/api/comments/64b7f0c2a1b2c3d4e5f60718", json={"content": "Hello"}, headers=user_headers
        )
        assert response.status_code == 404

    def test_empty_comment_rejected(self, client, post, user_headers):
        response = client.post(f"/api/comments/{post['id']}", json={"content": "   "}, headers=user_headers)
        assert response.status_code == 400
