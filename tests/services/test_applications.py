# tests/services/test_applications.py
"""Tests for the application workflow."""

import threading
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from commune.db.session import build_engine, create_tables, drop_tables
from commune.db.time import utcnow
from commune.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from commune.models import (
    ApplicationStatus,
    CommunityApplication,
    CommunityRole,
    Membership,
    MembershipStatus,
    Profile,
    ProfileOwnership,
    ProfileRole,
    User,
)
from commune.services import applications as application_module
from commune.services.applications import (
    approve_membership_application,
    get_application_statistics,
    get_community_applications,
    get_user_latest_application,
    reject_membership_application,
    revoke_application_review,
    submit_application,
    withdraw_application,
)
from commune.services.communities import create_community
from commune.services.membership import leave_community, update_member_role
from commune.services.profile_sharing import share_profile_with_user
from commune.services.profiles import can_use_profile, create_profile


def _submit(db_session, user, community, username="alice", **kwargs):
    return submit_application(
        db_session,
        user.id,
        community.id,
        profile_name=kwargs.pop("name", username.title()),
        profile_username=username,
        **kwargs,
    )


def test_submit_creates_pending_application_only(db_session, make_user, community) -> None:
    user = make_user()

    application = _submit(db_session, user, community, message="  hello  ")

    assert application.status is ApplicationStatus.PENDING
    assert application.message == "hello"
    assert application.reviewed_by_id is None
    assert db_session.query(Membership).filter_by(user_id=user.id).count() == 0
    assert db_session.query(Profile).filter_by(username="alice").count() == 0


def test_second_pending_application_conflicts(db_session, make_user, community) -> None:
    user = make_user()
    _submit(db_session, user, community)

    with pytest.raises(ConflictError):
        _submit(db_session, user, community, username="alice2")

    assert db_session.query(CommunityApplication).filter_by(user_id=user.id).count() == 1


def test_new_application_allowed_after_rejection(db_session, make_user, owner, community) -> None:
    user = make_user()
    first = _submit(db_session, user, community)
    reject_membership_application(db_session, first.id, owner.id, "Not yet")

    second = _submit(db_session, user, community, username="alice_again")

    assert second.id != first.id
    assert second.status is ApplicationStatus.PENDING


def test_active_member_cannot_apply(db_session, make_user, community, join) -> None:
    user = make_user()
    join(user, "alice")

    with pytest.raises(ConflictError, match="Already a member"):
        _submit(db_session, user, community, username="bob")


def test_username_of_active_profile_conflicts(db_session, make_user, community) -> None:
    with pytest.raises(ConflictError):
        _submit(db_session, make_user(), community, username="owner")


def test_username_reserved_by_other_pending_application(db_session, make_user, community) -> None:
    _submit(db_session, make_user(), community)

    with pytest.raises(ConflictError, match="reserved"):
        _submit(db_session, make_user(), community)


@pytest.mark.parametrize(
    ("name", "username"),
    [("", "alice"), ("Alice", ""), ("Alice", "has space"), ("Alice", "a" * 51)],
)
def test_invalid_identity_is_rejected(db_session, make_user, community, name, username) -> None:
    with pytest.raises(ValidationError):
        submit_application(
            db_session,
            make_user().id,
            community.id,
            profile_name=name,
            profile_username=username,
        )


def test_submit_to_unknown_community(db_session, make_user) -> None:
    with pytest.raises(NotFoundError):
        submit_application(
            db_session, make_user().id, 99999, profile_name="Alice", profile_username="alice"
        )


def test_submit_to_ended_community(db_session, make_user) -> None:
    creator = make_user()
    ended, _, _ = create_community(
        db_session,
        creator.id,
        slug="ended",
        name="Ended",
        profile_name="Creator",
        profile_username="creator",
        starts_at=utcnow() - timedelta(days=10),
        ends_at=utcnow() - timedelta(days=1),
    )

    with pytest.raises(InvalidStateError):
        _submit(db_session, make_user(), ended)


def test_approve_activates_membership_and_profile(db_session, make_user, owner, community) -> None:
    user = make_user()
    application = _submit(db_session, user, community)

    membership, profile = approve_membership_application(db_session, application.id, owner.id)

    assert membership.user_id == user.id
    assert membership.role is CommunityRole.MEMBER
    assert membership.status is MembershipStatus.ACTIVE
    assert membership.application_id == application.id
    assert profile.username == "alice"
    assert profile.is_active
    assert profile.is_primary

    ownership = db_session.query(ProfileOwnership).filter_by(profile_id=profile.id).one()
    assert ownership.user_id == user.id
    assert ownership.role is ProfileRole.OWNER
    assert ownership.created_by_id == owner.id

    db_session.refresh(application)
    assert application.status is ApplicationStatus.APPROVED
    assert application.reviewed_by_id == owner.id
    assert application.reviewed_at is not None


def test_approve_twice_is_invalid_state(db_session, make_user, owner, community) -> None:
    application = _submit(db_session, make_user(), community)
    approve_membership_application(db_session, application.id, owner.id)

    with pytest.raises(InvalidStateError):
        approve_membership_application(db_session, application.id, owner.id)

    assert db_session.query(Profile).filter_by(username="alice").count() == 1


def test_approve_requires_reviewer(db_session, make_user, community, join) -> None:
    member = make_user()
    join(member, "member")
    applicant = make_user()
    application = _submit(db_session, applicant, community)

    with pytest.raises(ForbiddenError):
        approve_membership_application(db_session, application.id, member.id)

    db_session.refresh(application)
    assert application.status is ApplicationStatus.PENDING
    assert db_session.query(Membership).filter_by(user_id=applicant.id).count() == 0


def test_moderator_can_approve(db_session, make_user, owner, community, join) -> None:
    moderator = make_user()
    _, moderator_membership, _ = join(moderator, "moderator")
    update_member_role(
        db_session, community.id, moderator_membership.id, CommunityRole.MODERATOR, owner.id
    )
    application = _submit(db_session, make_user(), community)

    membership, _ = approve_membership_application(db_session, application.id, moderator.id)

    assert membership.is_active


def test_approve_unknown_application(db_session, owner) -> None:
    with pytest.raises(NotFoundError):
        approve_membership_application(db_session, 99999, owner.id)


def test_reject_requires_reason(db_session, make_user, owner, community) -> None:
    application = _submit(db_session, make_user(), community)

    with pytest.raises(ValidationError):
        reject_membership_application(db_session, application.id, owner.id, "   ")


def test_rejection_is_terminal(db_session, make_user, owner, community) -> None:
    application = _submit(db_session, make_user(), community)
    rejected = reject_membership_application(db_session, application.id, owner.id, "Spam")

    assert rejected.status is ApplicationStatus.REJECTED
    assert rejected.rejection_reason == "Spam"
    with pytest.raises(InvalidStateError):
        approve_membership_application(db_session, application.id, owner.id)
    with pytest.raises(InvalidStateError):
        revoke_application_review(db_session, application.id)


def test_rejected_username_can_be_used_by_someone_else(db_session, make_user, owner, community) -> None:
    first = _submit(db_session, make_user(), community)
    reject_membership_application(db_session, first.id, owner.id, "No")

    other = make_user()
    application = _submit(db_session, other, community)
    _, profile = approve_membership_application(db_session, application.id, owner.id)

    assert profile.username == "alice"


def test_revoke_returns_application_to_pending(db_session, make_user, owner, community) -> None:
    application = _submit(db_session, make_user(), community)
    membership, profile = approve_membership_application(db_session, application.id, owner.id)

    revoked = revoke_application_review(db_session, application.id, acting_user_id=owner.id)

    assert revoked.status is ApplicationStatus.PENDING
    assert revoked.reviewed_by_id is None
    assert revoked.reviewed_at is None
    db_session.refresh(membership)
    db_session.refresh(profile)
    assert not membership.is_active
    assert not profile.is_active


def test_revoke_then_reapprove_reuses_rows(db_session, make_user, owner, community) -> None:
    application = _submit(db_session, make_user(), community)
    first_membership, first_profile = approve_membership_application(
        db_session, application.id, owner.id
    )
    first_ids = (first_membership.id, first_profile.id)

    revoke_application_review(db_session, application.id)
    membership, profile = approve_membership_application(db_session, application.id, owner.id)

    assert (membership.id, profile.id) == first_ids
    assert membership.is_active
    assert profile.is_active
    assert db_session.query(Profile).filter_by(community_id=community.id, username="alice").count() == 1


def test_revoke_pending_application_is_invalid(db_session, make_user, community) -> None:
    application = _submit(db_session, make_user(), community)

    with pytest.raises(InvalidStateError):
        revoke_application_review(db_session, application.id)


def test_revoke_by_plain_member_is_forbidden(db_session, make_user, community, join) -> None:
    member = make_user()
    join(member, "member")
    application, _, _ = join(make_user(), "alice")

    with pytest.raises(ForbiddenError):
        revoke_application_review(db_session, application.id, acting_user_id=member.id)


def test_revoke_of_active_owner_application_is_forbidden(
    db_session, make_user, owner, community, join
) -> None:
    user = make_user()
    application, membership, _ = join(user, "alice")
    update_member_role(db_session, community.id, membership.id, CommunityRole.OWNER, owner.id)

    with pytest.raises(ForbiddenError):
        revoke_application_review(db_session, application.id)

    db_session.refresh(membership)
    assert membership.is_active
    assert membership.role is CommunityRole.OWNER


def test_deactivated_username_is_never_reassigned(
    db_session, make_user, owner, community, join
) -> None:
    first = make_user()
    join(first, "alice")
    leave_community(db_session, first.id, community.id)

    application = _submit(db_session, make_user(), community)
    with pytest.raises(ConflictError):
        approve_membership_application(db_session, application.id, owner.id)

    db_session.refresh(application)
    assert application.status is ApplicationStatus.PENDING


def test_withdraw_pending_application(db_session, make_user, community) -> None:
    user = make_user()
    application = _submit(db_session, user, community)
    application_id = application.id

    withdraw_application(db_session, user.id, application_id)

    assert db_session.get(CommunityApplication, application_id) is None


def test_withdraw_checks_owner_and_state(db_session, make_user, owner, community) -> None:
    user = make_user()
    application = _submit(db_session, user, community)

    with pytest.raises(NotFoundError):
        withdraw_application(db_session, make_user().id, application.id)

    approve_membership_application(db_session, application.id, owner.id)
    with pytest.raises(InvalidStateError):
        withdraw_application(db_session, user.id, application.id)


def test_application_queries_and_statistics(db_session, make_user, owner, community) -> None:
    approved = _submit(db_session, make_user(), community, username="approved")
    approve_membership_application(db_session, approved.id, owner.id)
    rejected_user = make_user()
    rejected = _submit(db_session, rejected_user, community, username="rejected")
    reject_membership_application(db_session, rejected.id, owner.id, "No")
    _submit(db_session, make_user(), community, username="pending")

    pending = get_community_applications(db_session, community.id, ApplicationStatus.PENDING)
    assert [a.profile_username for a in pending] == ["pending"]
    assert len(get_community_applications(db_session, community.id)) == 3

    stats = get_application_statistics(db_session, community.id)
    assert stats == {
        ApplicationStatus.PENDING: 1,
        ApplicationStatus.APPROVED: 1,
        ApplicationStatus.REJECTED: 1,
    }

    latest = get_user_latest_application(db_session, rejected_user.id, community.id)
    assert latest is not None and latest.id == rejected.id
    assert get_user_latest_application(db_session, owner.id, community.id) is None


def test_withdraw_revoked_application_unlinks_membership(
    db_session, make_user, owner, community
) -> None:
    user = make_user()
    application = _submit(db_session, user, community)
    membership, _ = approve_membership_application(db_session, application.id, owner.id)
    revoke_application_review(db_session, application.id)

    withdraw_application(db_session, user.id, application.id)

    db_session.refresh(membership)
    assert membership.application_id is None
    assert not membership.is_active


def test_revoke_deactivates_every_owned_profile_and_grant(
    db_session, make_user, owner, community
) -> None:
    user = make_user()
    application = _submit(db_session, user, community)
    approve_membership_application(db_session, application.id, owner.id)
    extra = create_profile(db_session, user.id, community.id, name="Alt", username="alice_alt")
    news = create_profile(db_session, owner.id, community.id, name="News", username="news")
    share_profile_with_user(db_session, owner.id, news.id, community.id, "alice")

    revoke_application_review(db_session, application.id, acting_user_id=owner.id)

    db_session.refresh(extra)
    assert not extra.is_active
    assert not can_use_profile(db_session, user.id, news.id)

    _, profile = approve_membership_application(db_session, application.id, owner.id)
    db_session.refresh(extra)
    assert profile.is_active
    assert not extra.is_active


def test_concurrent_approvals_admit_one_winner(tmp_path, monkeypatch) -> None:
    engine = build_engine(f"sqlite:///{tmp_path / 'approvals.db'}")
    create_tables(engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    try:
        with SessionLocal() as setup:
            reviewer = User(login_name="reviewer")
            applicant = User(login_name="applicant")
            setup.add_all([reviewer, applicant])
            setup.commit()
            community, _, _ = create_community(
                setup,
                reviewer.id,
                slug="race",
                name="Race",
                profile_name="Reviewer",
                profile_username="reviewer",
            )
            application = _submit(setup, applicant, community)
            reviewer_id, community_id, application_id = reviewer.id, community.id, application.id

        # Both reviewers pass the pending check before either one writes.
        barrier = threading.Barrier(2, timeout=10)
        original_lookup = application_module.find_profile_by_username

        def _lookup_after_both_checked(*args, **kwargs):
            barrier.wait()
            return original_lookup(*args, **kwargs)

        monkeypatch.setattr(
            application_module, "find_profile_by_username", _lookup_after_both_checked
        )

        results: list[str] = []
        lock = threading.Lock()

        def _approve() -> None:
            with SessionLocal() as session:
                try:
                    approve_membership_application(session, application_id, reviewer_id)
                    outcome = "ok"
                except (ConflictError, InvalidStateError) as exc:
                    outcome = type(exc).__name__
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=_approve) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(results) == 2
        assert results.count("ok") == 1
        assert set(results) - {"ok"} <= {"ConflictError", "InvalidStateError"}
        with SessionLocal() as check:
            assert check.query(Profile).filter_by(
                community_id=community_id, username="alice"
            ).count() == 1
            assert check.query(Membership).filter(
                Membership.community_id == community_id,
                Membership.activated_at.is_not(None),
            ).count() == 2
    finally:
        drop_tables(engine)
        engine.dispose()
