from datetime import timedelta

from college_clubs.models import Announcement, utcnow

from conftest import TestingSessionLocal, auth_headers, get_admin, make_club, make_user


def setup_club():
    with TestingSessionLocal() as session:
        admin = get_admin(session)
        head = make_user(session, "head@college.edu", role="club_head")
        member = make_user(session, "member@college.edu")
        outsider = make_user(session, "outsider@college.edu")
        club = make_club(session, "Chess Club", head)
        session.commit()
    return admin, head, member, outsider, club


def event_payload(club_id: int, **overrides) -> dict:
    start = utcnow() + timedelta(days=3)
    payload = {
        "clubId": club_id,
        "title": "Blitz Night",
        "description": "Five minute games",
        "dateTime": start.isoformat(),
        "endDateTime": (start + timedelta(hours=2)).isoformat(),
        "location": "Library 2F",
    }
    payload.update(overrides)
    return payload


def test_event_lifecycle(client):
    admin, head, member, outsider, club = setup_club()
    created = client.post("/api/events", json=event_payload(club.id, maxAttendees=1), headers=auth_headers(head))
    assert created.status_code == 201
    event = created.json()["data"]
    assert event["organizer"]["id"] == head.id
    assert event["attendeeCount"] == 0

    listing = client.get("/api/events", params={"clubId": club.id}).json()
    assert [item["id"] for item in listing["data"]] == [event["id"]]
    assert client.get("/api/events", params={"search": "nothing"}).json()["data"] == []

    joined = client.post(f"/api/events/{event['id']}/join", headers=auth_headers(member))
    assert joined.status_code == 200
    assert joined.json()["data"]["attendeeCount"] == 1

    again = client.post(f"/api/events/{event['id']}/join", headers=auth_headers(member))
    assert again.status_code == 400
    full = client.post(f"/api/events/{event['id']}/join", headers=auth_headers(outsider))
    assert full.status_code == 400
    assert full.json()["message"] == "Event is full"

    mine = client.get("/api/events/user/my-events", headers=auth_headers(member)).json()["data"]
    assert [item["id"] for item in mine] == [event["id"]]

    left = client.post(f"/api/events/{event['id']}/leave", headers=auth_headers(member))
    assert left.status_code == 200
    not_attending = client.post(f"/api/events/{event['id']}/leave", headers=auth_headers(member))
    assert not_attending.status_code == 400

    deleted = client.delete(f"/api/events/{event['id']}", headers=auth_headers(admin))
    assert deleted.status_code == 200
    assert client.get(f"/api/events/{event['id']}").status_code == 404


def test_event_validation_and_permissions(client):
    _, head, member, _, club = setup_club()
    start = utcnow() + timedelta(days=1)
    backwards = event_payload(
        club.id, dateTime=start.isoformat(), endDateTime=(start - timedelta(hours=1)).isoformat()
    )
    response = client.post("/api/events", json=backwards, headers=auth_headers(head))
    assert response.status_code == 400
    assert "End time must be after start time" in response.json()["message"]

    by_member = client.post("/api/events", json=event_payload(club.id), headers=auth_headers(member))
    assert by_member.status_code == 403

    event = client.post("/api/events", json=event_payload(club.id), headers=auth_headers(head)).json()["data"]
    bad_status = client.put(f"/api/events/{event['id']}", json={"status": "postponed"}, headers=auth_headers(head))
    assert bad_status.status_code == 400
    bad_range = client.put(
        f"/api/events/{event['id']}",
        json={"endDateTime": (start - timedelta(days=5)).isoformat()},
        headers=auth_headers(head),
    )
    assert bad_range.status_code == 400

    cancelled = client.put(f"/api/events/{event['id']}", json={"status": "cancelled"}, headers=auth_headers(head))
    assert cancelled.status_code == 200
    closed = client.post(f"/api/events/{event['id']}/join", headers=auth_headers(member))
    assert closed.status_code == 400
    assert client.get("/api/events").json()["data"] == []
    assert len(client.get("/api/events", params={"status": "all"}).json()["data"]) == 1


def test_announcements_visibility_and_expiry(client):
    admin, head, member, outsider, club = setup_club()
    client.post(f"/api/clubs/{club.id}/join", headers=auth_headers(member))

    created = client.post(
        f"/api/clubs/{club.id}/announcements",
        json={"title": "Tournament", "content": "Sign up by Friday", "priority": "high"},
        headers=auth_headers(head),
    )
    assert created.status_code == 201
    assert created.json()["data"]["priority"] == "high"

    with TestingSessionLocal() as session:
        session.add(
            Announcement(
                club_id=club.id,
                author_id=head.id,
                title="Old news",
                content="Already over",
                expires_at=utcnow() - timedelta(days=1),
            )
        )
        session.commit()

    listing = client.get(f"/api/clubs/{club.id}/announcements", headers=auth_headers(member)).json()
    assert [item["title"] for item in listing["data"]] == ["Tournament"]
    assert listing["pagination"]["total"] == 1

    assert client.get(f"/api/clubs/{club.id}/announcements", headers=auth_headers(admin)).status_code == 200
    hidden = client.get(f"/api/clubs/{club.id}/announcements", headers=auth_headers(outsider))
    assert hidden.status_code == 403


def test_announcement_management(client):
    _, head, member, _, club = setup_club()
    client.post(f"/api/clubs/{club.id}/join", headers=auth_headers(member))

    by_member = client.post(
        f"/api/clubs/{club.id}/announcements",
        json={"title": "Hi", "content": "From a member"},
        headers=auth_headers(member),
    )
    assert by_member.status_code == 403

    bad_priority = client.post(
        f"/api/clubs/{club.id}/announcements",
        json={"title": "Hi", "content": "Body", "priority": "urgent"},
        headers=auth_headers(head),
    )
    assert bad_priority.status_code == 400

    announcement = client.post(
        f"/api/clubs/{club.id}/announcements",
        json={"title": "Meeting", "content": "Room 101"},
        headers=auth_headers(head),
    ).json()["data"]

    edit_by_member = client.put(
        f"/api/announcements/{announcement['id']}", json={"title": "Hacked"}, headers=auth_headers(member)
    )
    assert edit_by_member.status_code == 403

    edited = client.put(
        f"/api/announcements/{announcement['id']}",
        json={"content": "Room 202", "targetAudience": "new_members"},
        headers=auth_headers(head),
    )
    assert edited.status_code == 200
    assert edited.json()["data"]["content"] == "Room 202"
    assert edited.json()["data"]["targetAudience"] == "new_members"

    deleted = client.delete(f"/api/announcements/{announcement['id']}", headers=auth_headers(head))
    assert deleted.status_code == 200
    missing = client.delete(f"/api/announcements/{announcement['id']}", headers=auth_headers(head))
    assert missing.status_code == 404


def test_categories(client):
    admin, head, *_ = setup_club()
    names = [item["name"] for item in client.get("/api/categories").json()["data"]]
    assert "Technology" in names and len(names) == 6

    created = client.post(
        "/api/categories", json={"name": "Gaming", "color": "#000000"}, headers=auth_headers(admin)
    )
    assert created.status_code == 201
    duplicate = client.post("/api/categories", json={"name": "gaming"}, headers=auth_headers(admin))
    assert duplicate.status_code == 400
    by_head = client.post("/api/categories", json={"name": "Other"}, headers=auth_headers(head))
    assert by_head.status_code == 403
