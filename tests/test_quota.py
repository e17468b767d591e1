from datetime import datetime

import pytest

from gallerydesk.core.plan_features import UNLIMITED, PlanTier, entitlements
from gallerydesk.services.quota import (
    can_create,
    can_reactivate,
    check_limit,
    count_active_galleries,
)


def test_free_owner_at_limit_cannot_create(db_session, make_account, make_gallery):
    owner = make_account(plan="free")
    make_gallery(owner)
    make_gallery(owner)

    check = can_create(db_session, owner.UserID, PlanTier.FREE)
    assert check.allowed is False
    assert check.limit == 2
    assert check.current_count == 2
    assert "Free plan" in check.message
    assert "2/2" in check.message


def test_archived_and_trashed_do_not_count(db_session, make_account, make_gallery):
    owner = make_account(plan="free")
    make_gallery(owner)
    make_gallery(owner, archived=True)
    make_gallery(owner, deleted_at=datetime(2026, 1, 1))
    make_gallery(owner, archived=True, deleted_at=datetime(2026, 1, 1))

    assert count_active_galleries(db_session, owner.UserID) == 1
    check = can_create(db_session, owner.UserID, PlanTier.FREE)
    assert check.allowed is True
    assert check.message is None


def test_counts_are_per_owner(db_session, make_account, make_gallery):
    a = make_account()
    b = make_account()
    make_gallery(a)
    make_gallery(a)
    assert count_active_galleries(db_session, b.UserID) == 0
    assert can_create(db_session, b.UserID, PlanTier.FREE).allowed


@pytest.mark.parametrize("tier", [PlanTier.FREE, PlanTier.START, PlanTier.PLUS, PlanTier.PRO])
def test_allowed_iff_count_below_limit(tier):
    cap = entitlements(tier).max_galleries
    for count in (0, cap - 1, cap, cap + 3):
        assert check_limit(count, tier, cap).allowed is (count < cap)


def test_unlimited_is_always_allowed():
    check = check_limit(10_000, PlanTier.PREMIUM, UNLIMITED)
    assert check.allowed
    assert check.to_dict()["limit"] == "unlimited"


def test_reactivating_an_active_gallery_needs_no_slot(db_session, make_account, make_gallery):
    owner = make_account(plan="free")
    g = make_gallery(owner)
    make_gallery(owner)

    check = can_reactivate(db_session, owner.UserID, PlanTier.FREE, g.GalleryID)
    assert check.allowed


def test_reactivating_at_limit_is_rejected(db_session, make_account, make_gallery):
    owner = make_account(plan="free")
    make_gallery(owner)
    make_gallery(owner)
    archived = make_gallery(owner, archived=True)

    check = can_reactivate(db_session, owner.UserID, PlanTier.FREE, archived.GalleryID)
    assert not check.allowed
    assert check.to_dict()["tier"] == "free"

    # a bigger tier has room
    assert can_reactivate(db_session, owner.UserID, PlanTier.START, archived.GalleryID).allowed


def test_reactivate_foreign_gallery_is_unknown(db_session, make_account, make_gallery):
    owner = make_account()
    stranger = make_account()
    g = make_gallery(owner, archived=True)
    assert can_reactivate(db_session, stranger.UserID, PlanTier.FREE, g.GalleryID) is None


def test_premium_owner_can_always_create(db_session, make_account, make_gallery):
    owner = make_account(plan="premium")
    for _ in range(60):
        make_gallery(owner)

    check = can_create(db_session, owner.UserID, PlanTier.PREMIUM)
    assert check.allowed
    assert check.current_count == 60
    assert check.limit is UNLIMITED
    assert check.to_dict()["limit"] == "unlimited"
