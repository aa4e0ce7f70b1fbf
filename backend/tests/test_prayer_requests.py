"""
Tests for prayer request create/update/delete rules and single-fetch visibility.
"""

from datetime import datetime

import pytest
from sqlmodel import Session, select

from app.models.group import GroupJoinPolicy
from app.models.prayer_request import PrayerRequest, PrayerRequestGroup, PrayerStatus
from app.services import prayer_service
from app.services.errors import ForbiddenError, NotFoundError, ValidationError

BODY = "Please keep us in your prayers this week."


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


@pytest.fixture
def group(alice, make_group):
    return make_group(alice, name="Parish Choir", join_policy=GroupJoinPolicy.OPEN)


def _create(session: Session, author, visibility="PUBLIC", group_ids=None, title="Please pray for my mother", **kwargs):
    return prayer_service.create_prayer_request(
        session,
        author_id=author.id,
        title=title,
        body=kwargs.pop("body", BODY),
        category=kwargs.pop("category", "HEALTH"),
        visibility=visibility,
        group_ids=group_ids,
        **kwargs,
    )


class TestCreate:
    def test_public_request_starts_active_with_zero_count(self, session, alice):
        request = prayer_service.create_prayer_request(
            session,
            author_id=alice.id,
            title="Please pray for my mother",
            body="She is in pain.",
            category="HEALTH",
            visibility="PUBLIC",
        )

        assert request.status == PrayerStatus.ACTIVE
        assert request.prayed_count == 0
        assert request.deleted_at is None

    def test_title_and_body_are_trimmed(self, session, alice):
        request = _create(session, alice, title="   Healing   ", body=f"  {BODY}  ")

        assert request.title == "Healing"
        assert request.body == BODY

    @pytest.mark.parametrize(
        "field,value,message",
        [
            ("title", "ab", "invalid title"),
            ("title", "x" * 121, "invalid title"),
            ("body", "too short", "invalid body"),
            ("body", "x" * 4001, "invalid body"),
            ("category", "WEATHER", "invalid category"),
            ("visibility", "FRIENDS", "invalid visibility"),
        ],
    )
    def test_field_validation(self, session, alice, field, value, message):
        kwargs = {"title": "Healing", "body": BODY, "category": "HEALTH", "visibility": "PUBLIC"}
        kwargs[field] = value

        with pytest.raises(ValidationError, match=message):
            prayer_service.create_prayer_request(session, author_id=alice.id, **kwargs)

    def test_enum_values_are_case_insensitive(self, session, alice):
        request = _create(session, alice, category="family", visibility="public")

        assert request.category == "FAMILY"
        assert request.visibility == "PUBLIC"

    def test_group_only_without_groups_is_rejected(self, session, alice):
        with pytest.raises(ValidationError, match="groupIds required"):
            _create(session, alice, visibility="GROUP_ONLY", group_ids=[])

        assert session.exec(select(PrayerRequest)).all() == []

    def test_private_with_groups_is_rejected(self, session, alice, group):
        with pytest.raises(ValidationError):
            _create(session, alice, visibility="PRIVATE", group_ids=[group.id])

    def test_group_only_by_member_attaches_groups_once(self, session, alice, group):
        request = _create(session, alice, visibility="GROUP_ONLY", group_ids=[group.id, group.id, " "])

        links = session.exec(select(PrayerRequestGroup).where(PrayerRequestGroup.prayer_request_id == request.id)).all()
        assert [link.group_id for link in links] == [group.id]

    def test_non_member_group_rejects_whole_write(self, session, alice, bob, group, make_group):
        bobs_group = make_group(bob, name="Bob's Group")

        with pytest.raises(ForbiddenError) as exc_info:
            _create(session, alice, visibility="GROUP_ONLY", group_ids=[group.id, bobs_group.id])

        assert exc_info.value.code == "GROUP_ACCESS_DENIED"
        assert session.exec(select(PrayerRequest)).all() == []
        assert session.exec(select(PrayerRequestGroup)).all() == []

    def test_unknown_group_is_rejected(self, session, alice):
        with pytest.raises(ForbiddenError):
            _create(session, alice, visibility="GROUP_ONLY", group_ids=["no-such-group"])


class TestVisibility:
    def test_private_request_only_visible_to_author(self, session, alice, bob):
        request = _create(session, alice, visibility="PRIVATE")

        assert prayer_service.get_prayer_request(session, request.id, alice.id).id == request.id
        with pytest.raises(NotFoundError):
            prayer_service.get_prayer_request(session, request.id, bob.id)
        with pytest.raises(NotFoundError):
            prayer_service.get_prayer_request(session, request.id, None)

    def test_group_only_visible_to_active_members(self, session, alice, bob, carol, group, add_member):
        add_member(group, bob)
        request = _create(session, alice, visibility="GROUP_ONLY", group_ids=[group.id])

        assert prayer_service.get_prayer_request(session, request.id, bob.id).id == request.id
        with pytest.raises(NotFoundError):
            prayer_service.get_prayer_request(session, request.id, carol.id)

    def test_soft_deleted_membership_loses_visibility(self, session, alice, bob, group, add_member):
        membership = add_member(group, bob)
        request = _create(session, alice, visibility="GROUP_ONLY", group_ids=[group.id])

        membership.deleted_at = datetime.utcnow()
        session.add(membership)
        session.commit()

        with pytest.raises(NotFoundError):
            prayer_service.get_prayer_request(session, request.id, bob.id)

    def test_public_request_visible_to_anyone(self, session, alice, bob):
        request = _create(session, alice)

        assert prayer_service.get_prayer_request(session, request.id, bob.id).id == request.id
        assert prayer_service.get_prayer_request(session, request.id, None).id == request.id

    def test_non_active_public_request_only_visible_to_author(self, session, alice, bob):
        request = _create(session, alice)
        request.status = PrayerStatus.CLOSED
        session.add(request)
        session.commit()

        assert prayer_service.get_prayer_request(session, request.id, alice.id).id == request.id
        with pytest.raises(NotFoundError):
            prayer_service.get_prayer_request(session, request.id, bob.id)

    def test_missing_request_is_not_found(self, session, alice):
        with pytest.raises(NotFoundError):
            prayer_service.get_prayer_request(session, "missing", alice.id)


class TestUpdate:
    def test_author_replaces_fields_and_groups(self, session, alice, group, make_group):
        other = make_group(alice, name="Youth Ministry")
        request = _create(session, alice, visibility="GROUP_ONLY", group_ids=[group.id])

        updated = prayer_service.update_prayer_request(
            session,
            request.id,
            author_id=alice.id,
            title="Updated title",
            body=BODY,
            category="FAMILY",
            visibility="GROUP_ONLY",
            group_ids=[other.id],
        )

        assert updated.title == "Updated title"
        assert updated.category == "FAMILY"
        links = session.exec(select(PrayerRequestGroup).where(PrayerRequestGroup.prayer_request_id == request.id)).all()
        assert [link.group_id for link in links] == [other.id]

    def test_update_keeps_stored_status(self, session, alice):
        request = _create(session, alice)
        request.status = PrayerStatus.PENDING_REVIEW
        session.add(request)
        session.commit()

        updated = prayer_service.update_prayer_request(
            session, request.id, alice.id, "New title", BODY, "OTHER", "PUBLIC"
        )

        assert updated.status == PrayerStatus.PENDING_REVIEW

    def test_failed_membership_check_leaves_request_untouched(self, session, alice, bob, group, make_group):
        bobs_group = make_group(bob, name="Bob's Group")
        request = _create(session, alice, visibility="GROUP_ONLY", group_ids=[group.id])

        with pytest.raises(ForbiddenError):
            prayer_service.update_prayer_request(
                session, request.id, alice.id, "Changed", BODY, "HEALTH", "GROUP_ONLY", group_ids=[bobs_group.id]
            )

        session.expire_all()
        stored = session.get(PrayerRequest, request.id)
        assert stored.title == "Please pray for my mother"
        links = session.exec(select(PrayerRequestGroup).where(PrayerRequestGroup.prayer_request_id == request.id)).all()
        assert [link.group_id for link in links] == [group.id]

    def test_other_user_cannot_update_visible_request(self, session, alice, bob):
        request = _create(session, alice)

        with pytest.raises(ForbiddenError):
            prayer_service.update_prayer_request(session, request.id, bob.id, "Hijacked", BODY, "OTHER", "PUBLIC")

    def test_other_user_cannot_see_private_request_to_update(self, session, alice, bob):
        request = _create(session, alice, visibility="PRIVATE")

        with pytest.raises(NotFoundError):
            prayer_service.update_prayer_request(session, request.id, bob.id, "Hijacked", BODY, "OTHER", "PUBLIC")


class TestDelete:
    def test_delete_archives_and_hides(self, session, alice):
        request = _create(session, alice)

        prayer_service.delete_prayer_request(session, request.id, alice.id)

        session.expire_all()
        stored = session.get(PrayerRequest, request.id)
        assert stored.status == PrayerStatus.ARCHIVED
        assert stored.deleted_at is not None
        with pytest.raises(NotFoundError):
            prayer_service.get_prayer_request(session, request.id, alice.id)

    def test_repeated_delete_is_not_found(self, session, alice):
        request = _create(session, alice)
        prayer_service.delete_prayer_request(session, request.id, alice.id)

        with pytest.raises(NotFoundError):
            prayer_service.delete_prayer_request(session, request.id, alice.id)

    def test_only_author_can_delete(self, session, alice, bob):
        request = _create(session, alice)

        with pytest.raises(ForbiddenError):
            prayer_service.delete_prayer_request(session, request.id, bob.id)
