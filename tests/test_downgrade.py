import json
from datetime import datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from gallerydesk.core.plan_features import UNLIMITED, PlanTier
from gallerydesk.models import Account, Gallery, GalleryState, PlanChangeAudit
from gallerydesk.services.downgrade import change_plan, reconcile
from gallerydesk.services.gallery_service import GalleryService

NOW = datetime(2026, 5, 1, 9, 30)


def _states(db_session, galleries):
    db_session.expire_all()
    return {
        g.GalleryID: db_session.get(Gallery, g.GalleryID).state for g in galleries
    }


def _audits(db_session, user_id):
    return (
        db_session.query(PlanChangeAudit)
        .filter(PlanChangeAudit.UserID == user_id)
        .order_by(PlanChangeAudit.AuditID)
        .all()
    )


def test_reconcile_archives_least_recent(db_session, make_account, make_gallery):
    owner = make_account(plan="pro")
    galleries = [make_gallery(owner, event_date=datetime(2026, 1, d)) for d in (5, 1, 4, 2, 3)]

    archived = reconcile(db_session, owner.UserID, 3, "pro", "start", now=NOW)
    assert archived == 2

    states = _states(db_session, galleries)
    by_day = {g.EventDate.day: states[g.GalleryID] for g in galleries}
    assert by_day == {
        5: GalleryState.ACTIVE,
        4: GalleryState.ACTIVE,
        3: GalleryState.ACTIVE,
        2: GalleryState.ARCHIVED,
        1: GalleryState.ARCHIVED,
    }

    (audit,) = _audits(db_session, owner.UserID)
    assert audit.ArchivedCount == 2
    assert audit.OldPlan == "pro"
    assert audit.NewPlan == "start"
    assert audit.NewLimit == 3
    assert sorted(json.loads(audit.ArchivedIDs)) == sorted(
        g.GalleryID for g in galleries if g.EventDate.day in (1, 2)
    )

    # Running again changes nothing but still leaves a trail
    assert reconcile(db_session, owner.UserID, 3, now=NOW) == 0
    audits = _audits(db_session, owner.UserID)
    assert len(audits) == 2
    assert audits[-1].ArchivedCount == 0


def test_reconcile_tie_breaks_on_gallery_id(db_session, make_account, make_gallery):
    owner = make_account()
    same = datetime(2026, 2, 2)
    first = make_gallery(owner, event_date=same)
    second = make_gallery(owner, event_date=same)

    assert reconcile(db_session, owner.UserID, 1, now=NOW) == 1
    states = _states(db_session, [first, second])
    assert states[second.GalleryID] is GalleryState.ACTIVE
    assert states[first.GalleryID] is GalleryState.ARCHIVED


def test_reconcile_ignores_archived_trashed_and_other_owners(
    db_session, make_account, make_gallery
):
    owner = make_account()
    other = make_account()
    active = make_gallery(owner)
    archived = make_gallery(owner, archived=True)
    trashed = make_gallery(owner, deleted_at=datetime(2026, 4, 1))
    foreign = [make_gallery(other), make_gallery(other)]

    assert reconcile(db_session, owner.UserID, 1, now=NOW) == 0
    states = _states(db_session, [active, archived, trashed, *foreign])
    assert states[active.GalleryID] is GalleryState.ACTIVE
    assert states[archived.GalleryID] is GalleryState.ARCHIVED
    assert states[trashed.GalleryID] is GalleryState.TRASHED
    assert all(states[g.GalleryID] is GalleryState.ACTIVE for g in foreign)


def test_reconcile_unlimited_archives_nothing(db_session, make_account, make_gallery):
    owner = make_account()
    for _ in range(4):
        make_gallery(owner)
    assert reconcile(db_session, owner.UserID, UNLIMITED, now=NOW) == 0
    (audit,) = _audits(db_session, owner.UserID)
    assert audit.NewLimit is None
    assert audit.ArchivedCount == 0


def test_reconcile_rejects_negative_limit(db_session, make_account):
    owner = make_account()
    with pytest.raises(ValueError):
        reconcile(db_session, owner.UserID, -1)


def test_reconcile_failure_rolls_back_and_raises(
    db_session, make_account, make_gallery, monkeypatch
):
    owner = make_account()
    galleries = [make_gallery(owner) for _ in range(3)]

    def _fail():
        raise SQLAlchemyError("deadlock")

    monkeypatch.setattr(db_session, "commit", _fail)
    with pytest.raises(SQLAlchemyError):
        reconcile(db_session, owner.UserID, 1, now=NOW)
    monkeypatch.undo()

    states = _states(db_session, galleries)
    assert all(s is GalleryState.ACTIVE for s in states.values())
    assert _audits(db_session, owner.UserID) == []


def test_downgrade_pro_to_free_keeps_two_active(db_session, make_account, make_gallery):
    owner = make_account(plan="pro")
    to_archive = make_gallery(owner, event_date=datetime(2026, 1, 10))
    oldest = make_gallery(owner, event_date=datetime(2025, 6, 1))
    middle = make_gallery(owner, event_date=datetime(2025, 9, 1))
    newest = make_gallery(owner, event_date=datetime(2026, 2, 1))

    assert GalleryService(db_session).archive(owner, to_archive.GalleryID).success

    result = change_plan(db_session, owner, PlanTier.FREE, now=NOW)
    assert result.success
    assert result.data["archived_count"] == 1
    assert result.data["old_plan"] == "pro"
    assert result.data["new_plan"] == "free"

    states = _states(db_session, [to_archive, oldest, middle, newest])
    assert states[oldest.GalleryID] is GalleryState.ARCHIVED
    assert states[middle.GalleryID] is GalleryState.ACTIVE
    assert states[newest.GalleryID] is GalleryState.ACTIVE
    assert states[to_archive.GalleryID] is GalleryState.ARCHIVED

    account = db_session.query(Account).filter(Account.UserID == owner.UserID).one()
    assert account.PlanKey == "free"
    (audit,) = _audits(db_session, owner.UserID)
    assert audit.NewLimit == 2


def test_upgrade_does_not_reconcile(db_session, make_account, make_gallery):
    owner = make_account(plan="free")
    make_gallery(owner)
    make_gallery(owner)

    result = change_plan(db_session, owner, PlanTier.PLUS)
    assert result.success
    assert result.data["archived_count"] == 0
    assert _audits(db_session, owner.UserID) == []
    db_session.expire_all()
    assert db_session.get(Account, owner.UserID).PlanKey == "plus"
