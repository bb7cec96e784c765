import pytest
from sqlalchemy import func, select

from college_clubs import membership
from college_clubs.errors import (
    ActionBlocked,
    BadRequest,
    CapacityExceeded,
    Conflict,
    Forbidden,
    NotFound,
)
from college_clubs.models import MembershipRequest, club_members, user_joined_clubs

from conftest import get_admin, make_club, make_user


def joined_pairs(db):
    return set(db.execute(select(user_joined_clubs.c.user_id, user_joined_clubs.c.club_id)).all())


def member_pairs(db):
    return set(db.execute(select(club_members.c.user_id, club_members.c.club_id)).all())


def test_open_club_fills_up_then_rejects(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Chess", head, max_members=3)
    u1 = make_user(db, "u1@college.edu")
    u2 = make_user(db, "u2@college.edu")
    u3 = make_user(db, "u3@college.edu")

    result = membership.join(db, u1, club.id)
    assert not result.pending
    assert club.member_count == 2

    membership.join(db, u2, club.id)
    assert [member.id for member in club.members] == [head.id, u1.id, u2.id]
    assert club.member_count == 3

    with pytest.raises(CapacityExceeded):
        membership.join(db, u3, club.id)
    assert not club.has_member(u3.id)


def test_capacity_without_head(db):
    club = make_club(db, "Tiny", max_members=2)
    users = [make_user(db, f"t{i}@college.edu") for i in range(3)]

    membership.join(db, users[0], club.id)
    membership.join(db, users[1], club.id)
    assert club.member_count == 2

    with pytest.raises(CapacityExceeded):
        membership.join(db, users[2], club.id)


def test_join_and_leave_keep_both_sides_in_sync(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Robotics", head)
    student = make_user(db, "student@college.edu")

    membership.join(db, student, club.id)
    assert (student.id, club.id) in member_pairs(db)
    assert (student.id, club.id) in joined_pairs(db)
    assert club in student.joined_clubs

    membership.leave(db, student, club.id)
    assert (student.id, club.id) not in member_pairs(db)
    assert (student.id, club.id) not in joined_pairs(db)
    assert club.member_count == 1
    assert club not in student.joined_clubs


def test_join_guards(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Drama", head)
    student = make_user(db, "student@college.edu")

    with pytest.raises(NotFound):
        membership.join(db, student, 9999)

    membership.join(db, student, club.id)
    with pytest.raises(Conflict):
        membership.join(db, student, club.id)

    closed = make_club(db, "Closed", head, allow_joining=False)
    with pytest.raises(ActionBlocked) as excinfo:
        membership.join(db, student, closed.id)
    assert excinfo.value.status_code == 400
    assert isinstance(excinfo.value, Forbidden)

    inactive = make_club(db, "Gone", head, is_active=False)
    with pytest.raises(NotFound):
        membership.join(db, student, inactive.id)


def test_approval_flow_and_one_shot_decision(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Debate", head, require_approval=True)
    student = make_user(db, "student@college.edu")

    result = membership.join(db, student, club.id, "hi")
    assert result.pending
    assert result.request.status == "pending"
    assert result.request.request_message == "hi"
    assert not club.has_member(student.id)
    assert club.member_count == 1

    with pytest.raises(Conflict):
        membership.join(db, student, club.id, "again")

    decided = membership.decide(db, result.request.id, "approved", head, "welcome")
    assert decided.status == "approved"
    assert decided.responded_by_id == head.id
    assert decided.responded_at is not None
    assert club.has_member(student.id)
    assert club in student.joined_clubs
    assert club.member_count == 2

    with pytest.raises(Conflict):
        membership.decide(db, result.request.id, "approved", head)
    with pytest.raises(Conflict):
        membership.decide(db, result.request.id, "rejected", head)


def test_decide_requires_manager_and_valid_status(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Poetry", head, require_approval=True)
    student = make_user(db, "student@college.edu")
    outsider = make_user(db, "outsider@college.edu", role="club_head")
    request = membership.join(db, student, club.id).request

    with pytest.raises(BadRequest):
        membership.decide(db, request.id, "maybe", head)
    with pytest.raises(NotFound):
        membership.decide(db, 4242, "approved", head)
    with pytest.raises(Forbidden):
        membership.decide(db, request.id, "approved", outsider)

    admin = get_admin(db)
    membership.decide(db, request.id, "rejected", admin, "not this term")
    assert request.status == "rejected"
    assert request.admin_response == "not this term"
    assert not club.has_member(student.id)


def test_capacity_rechecked_at_approval(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Rowing", head, require_approval=True, max_members=2)
    first = make_user(db, "first@college.edu")
    second = make_user(db, "second@college.edu")

    r1 = membership.join(db, first, club.id).request
    r2 = membership.join(db, second, club.id).request
    membership.decide(db, r1.id, "approved", head)

    with pytest.raises(CapacityExceeded):
        membership.decide(db, r2.id, "approved", head)
    assert r2.status == "pending"


def test_rejected_user_can_apply_again(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Film", head, require_approval=True)
    student = make_user(db, "student@college.edu")

    old = membership.join(db, student, club.id).request
    membership.decide(db, old.id, "rejected", head)

    new = membership.join(db, student, club.id, "second try").request
    assert new.id != old.id
    assert new.status == "pending"

    statuses = db.execute(
        select(MembershipRequest.status)
        .where(MembershipRequest.user_id == student.id)
        .order_by(MembershipRequest.id)
    ).scalars().all()
    assert statuses == ["rejected", "pending"]


def test_head_cannot_leave_or_be_removed(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Astronomy", head)
    admin = get_admin(db)

    with pytest.raises(ActionBlocked):
        membership.leave(db, head, club.id)
    with pytest.raises(ActionBlocked):
        membership.remove_member(db, admin, club.id, head.id)
    assert club.has_member(head.id)


def test_remove_member(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Hiking", head)
    student = make_user(db, "student@college.edu")
    other = make_user(db, "other@college.edu")
    membership.join(db, student, club.id)
    membership.join(db, other, club.id)

    with pytest.raises(Forbidden):
        membership.remove_member(db, other, club.id, student.id)

    membership.remove_member(db, head, club.id, student.id)
    assert not club.has_member(student.id)
    assert club not in student.joined_clubs
    assert club.member_count == 2

    with pytest.raises(Conflict):
        membership.remove_member(db, head, club.id, student.id)


def test_leave_requires_membership(db):
    club = make_club(db, "Knitting")
    student = make_user(db, "student@college.edu")
    with pytest.raises(Conflict):
        membership.leave(db, student, club.id)
    with pytest.raises(NotFound):
        membership.leave(db, student, 9999)


def test_add_member_bypasses_approval_and_closes_pending_request(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Choir", head, require_approval=True)
    student = make_user(db, "student@college.edu")
    request = membership.join(db, student, club.id).request

    membership.add_member(db, head, club.id, student.id)
    assert club.has_member(student.id)
    assert request.status == "approved"
    assert request.responded_by_id == head.id

    with pytest.raises(Conflict):
        membership.add_member(db, head, club.id, student.id)


def test_toggle_joining(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Cycling", head)
    student = make_user(db, "student@college.edu")

    assert membership.toggle_joining(db, head, club.id).allow_joining is False
    with pytest.raises(Forbidden):
        membership.toggle_joining(db, student, club.id)
    assert membership.toggle_joining(db, head, club.id).allow_joining is True


def test_delete_club_is_soft_and_clears_back_references(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Origami", head, require_approval=True)
    student = make_user(db, "student@college.edu")
    request = membership.join(db, student, club.id).request
    membership.add_member(db, head, club.id, student.id)

    membership.delete_club(db, head, club.id)
    assert club.is_active is False
    assert club not in student.joined_clubs
    assert club not in head.joined_clubs
    # History and the authoritative member set survive.
    assert db.get(MembershipRequest, request.id) is not None
    assert club.has_member(student.id)

    with pytest.raises(NotFound):
        membership.delete_club(db, head, club.id)


def test_delete_user_blocked_while_heading_a_club(db):
    admin = get_admin(db)
    head = make_user(db, "head@college.edu", role="club_head")
    successor = make_user(db, "next@college.edu", role="club_head")
    club = make_club(db, "Sailing", head)
    membership.join(db, successor, club.id)

    with pytest.raises(Conflict) as excinfo:
        membership.delete_user(db, admin, head.id)
    assert excinfo.value.extra["clubs"] == ["Sailing"]

    club.club_head_id = successor.id
    db.flush()
    head_id = head.id
    membership.delete_user(db, admin, head_id)

    assert (head_id, club.id) not in member_pairs(db)
    assert all(member.id != head_id for member in club.members)
    assert club.member_count == 1


def test_delete_user_keeps_decided_requests(db):
    admin = get_admin(db)
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Jazz", head, require_approval=True)
    student = make_user(db, "student@college.edu")
    other = make_club(db, "Blues", head, require_approval=True)

    decided = membership.join(db, student, club.id).request
    membership.decide(db, decided.id, "rejected", head)
    pending = membership.join(db, student, other.id).request
    decided_id, pending_id = decided.id, pending.id

    membership.delete_user(db, admin, student.id)

    assert db.get(MembershipRequest, pending_id) is None
    kept = db.get(MembershipRequest, decided_id)
    assert kept is not None
    assert kept.user_id is None
    assert kept.status == "rejected"


def test_delete_user_guards(db):
    admin = get_admin(db)
    student = make_user(db, "student@college.edu")
    with pytest.raises(ActionBlocked):
        membership.delete_user(db, admin, admin.id)
    with pytest.raises(Forbidden):
        membership.delete_user(db, student, admin.id)
    with pytest.raises(NotFound):
        membership.delete_user(db, admin, 9999)


def test_member_count_matches_member_set_after_mixed_operations(db):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Gardening", head)
    users = [make_user(db, f"g{i}@college.edu") for i in range(4)]
    for user in users:
        membership.join(db, user, club.id)
    membership.leave(db, users[0], club.id)
    membership.remove_member(db, head, club.id, users[1].id)

    stored = db.execute(
        select(func.count()).select_from(club_members).where(club_members.c.club_id == club.id)
    ).scalar_one()
    assert club.member_count == stored == 3


def test_concurrent_pending_request_is_a_conflict(db, monkeypatch):
    head = make_user(db, "head@college.edu", role="club_head")
    club = make_club(db, "Orchestra", head, require_approval=True)
    student = make_user(db, "student@college.edu")
    membership.join(db, student, club.id)

    # Simulate a second request racing past the lookup before the first is visible.
    monkeypatch.setattr(membership, "pending_request", lambda *args: None)
    with pytest.raises(Conflict) as excinfo:
        membership.join(db, student, club.id)
    assert excinfo.value.message == "You already have a pending membership request"
