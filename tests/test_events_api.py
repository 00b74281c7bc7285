"""HTTP tests for /api/events."""
from datetime import timedelta

from database import utcnow

from conftest import auth_headers, event_payload, make_event, make_user


class TestEventSubmission:
    """Tests for POST /api/events and PUT /api/events/{id}"""

    def test_created_event_waits_for_approval(self, client, user_headers):
        response = client.post("/api/events", json=event_payload(price=150), headers=user_headers)

        assert response.status_code == 201
        event = response.json()["data"]["event"]
        assert event["is_approved"] is False
        assert event["is_paid"] is True
        assert event["attendee_count"] == 0
        assert event["available_spots"] == 2
        assert event["organizer_id"]["name"] == "Asha"

    def test_rejects_past_date_and_late_deadline(self, client, user_headers):
        payload = event_payload(
            date=(utcnow() - timedelta(days=1)).isoformat(),
            registration_deadline=(utcnow() + timedelta(days=1)).isoformat(),
        )
        response = client.post("/api/events", json=payload, headers=user_headers)

        assert response.status_code == 400
        fields = [error["field"] for error in response.json()["errors"]]
        assert fields == ["date", "registration_deadline"]

    def test_online_event_requires_link(self, client, user_headers):
        response = client.post("/api/events", json=event_payload(is_online=True), headers=user_headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "online_link"

    def test_only_organizer_updates(self, client, db, user, user_headers, other_headers):
        event_id = str(make_event(db, str(user["_id"]))["_id"])

        assert client.put(f"/api/events/{event_id}", json={"title": "Mine"}, headers=other_headers).status_code == 403

        response = client.put(f"/api/events/{event_id}", json={"title": "Poetry Night II"}, headers=user_headers)
        event = response.json()["data"]["event"]
        assert event["title"] == "Poetry Night II"
        assert event["is_approved"] is False

    def test_null_ignored_for_required_fields(self, client, db, user, user_headers, other_headers):
        event_id = str(make_event(db, str(user["_id"]))["_id"])

        response = client.put(
            f"/api/events/{event_id}",
            json={"title": None, "date": None, "max_attendees": None},
            headers=user_headers,
        )
        assert response.status_code == 200
        event = response.json()["data"]["event"]
        assert event["title"] == "Poetry Night"
        assert event["date"] is not None
        assert event["max_attendees"] == 2

        registered = client.post(f"/api/events/{event_id}/register", headers=other_headers)
        assert registered.json()["data"] == {"attendee_count": 1, "available_spots": 1}

    def test_null_clears_registration_deadline(self, client, db, user, user_headers):
        event_id = str(make_event(db, str(user["_id"]), registration_deadline=utcnow() + timedelta(days=1))["_id"])

        response = client.put(f"/api/events/{event_id}", json={"registration_deadline": None}, headers=user_headers)
        assert response.json()["data"]["event"]["registration_deadline"] is None

    def test_capacity_cannot_drop_below_registrations(self, client, db, user, user_headers, other_headers):
        event_id = str(make_event(db, str(user["_id"]), max_attendees=3)["_id"])
        client.post(f"/api/events/{event_id}/register", headers=user_headers)
        client.post(f"/api/events/{event_id}/register", headers=other_headers)

        response = client.put(f"/api/events/{event_id}", json={"max_attendees": 1}, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "max_attendees"


class TestEventListing:
    """Tests for the public event endpoints."""

    def test_lists_only_approved(self, client, db, user):
        make_event(db, str(user["_id"]), title="Open Mic")
        make_event(db, str(user["_id"]), title="Draft", approved=False)

        body = client.get("/api/events").json()["data"]
        assert [event["title"] for event in body["events"]] == ["Open Mic"]
        assert body["pagination"]["totalEvents"] == 1
        assert body["pagination"]["hasNext"] is False

    def test_search_category_and_upcoming(self, client, db, user):
        make_event(db, str(user["_id"]), title="Launch Party", category="Launch")
        make_event(db, str(user["_id"]), title="Past Reading", category="Reading", date=utcnow() - timedelta(days=2))

        assert len(client.get("/api/events", params={"search": "launch"}).json()["data"]["events"]) == 1
        assert len(client.get("/api/events", params={"category": "Reading"}).json()["data"]["events"]) == 1
        upcoming = client.get("/api/events", params={"upcoming": "true"}).json()["data"]["events"]
        assert [event["title"] for event in upcoming] == ["Launch Party"]

    def test_unapproved_event_is_hidden(self, client, db, user):
        event_id = str(make_event(db, str(user["_id"]), approved=False)["_id"])
        response = client.get(f"/api/events/{event_id}")
        assert response.status_code == 404
        assert response.json()["message"] == "Event not available"


class TestEventRegistration:
    """Tests for POST/DELETE /api/events/{id}/register"""

    def test_full_event(self, client, db, user):
        event_id = str(make_event(db, str(user["_id"]), max_attendees=2)["_id"])
        guests = [make_user(db, f"92000000{i:02d}", name=f"Guest {i}") for i in range(3)]

        first = client.post(f"/api/events/{event_id}/register", headers=auth_headers(guests[0]))
        assert first.json()["data"] == {"attendee_count": 1, "available_spots": 1}
        client.post(f"/api/events/{event_id}/register", headers=auth_headers(guests[1]))

        third = client.post(f"/api/events/{event_id}/register", headers=auth_headers(guests[2]))
        assert third.status_code == 400
        assert third.json()["message"].startswith("Cannot register for this event")

        event = client.get(f"/api/events/{event_id}").json()["data"]["event"]
        assert event["is_full"] is True
        assert event["attendees"][0]["user_id"]["name"] == "Guest 0"

    def test_unregister(self, client, db, user, user_headers, other_headers):
        event_id = str(make_event(db, str(user["_id"]))["_id"])

        not_registered = client.delete(f"/api/events/{event_id}/register", headers=other_headers)
        assert not_registered.status_code == 400
        assert not_registered.json()["message"] == "User is not registered for this event"

        client.post(f"/api/events/{event_id}/register", headers=other_headers)
        response = client.delete(f"/api/events/{event_id}/register", headers=other_headers)
        assert response.json()["data"] == {"attendee_count": 0, "available_spots": 2}

    def test_my_events_and_registered(self, client, db, user, user_headers, other_headers):
        event_id = str(make_event(db, str(user["_id"]))["_id"])
        client.post(f"/api/events/{event_id}/register", headers=other_headers)

        mine = client.get("/api/events/user/my-events", headers=user_headers).json()["data"]["events"]
        assert [event["id"] for event in mine] == [event_id]

        registered = client.get("/api/events/user/registered", headers=other_headers).json()["data"]["events"]
        assert [event["id"] for event in registered] == [event_id]

        client.delete(f"/api/events/{event_id}/register", headers=other_headers)
        assert client.get("/api/events/user/registered", headers=other_headers).json()["data"]["events"] == []
