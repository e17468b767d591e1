from datetime import datetime, timedelta

import pytest

from gallerydesk.core.settings import settings
from gallerydesk.models import Account, Gallery, PlanChangeAudit


def test_list_plans(client):
    r = client.get("/plans")
    assert r.status_code == 200
    plans = r.json()["data"]["plans"]
    assert [p["code"] for p in plans] == ["free", "start", "plus", "pro", "premium"]
    assert [p["features"]["management"]["max_galleries"] for p in plans] == [2, 10, 25, 50, "unlimited"]
    assert plans[-1]["features"]["management"]["team_members"] == "unlimited"


def test_current_plan(db_session, client, make_account, make_gallery, login):
    owner = make_account(plan="start")
    make_gallery(owner)
    login(owner)
    data = client.get("/plans/current").json()["data"]
    assert data["code"] == "start"
    assert data["galleries"]["current_count"] == 1
    assert data["galleries"]["limit"] == 10


def test_upsell(client):
    r = client.get("/plans/upsell", params={"feature": "remove_branding", "from_tier": "free"})
    assert r.status_code == 200
    assert r.json()["data"]["tier"] == "premium"

    r = client.get("/plans/upsell", params={"feature": "can_favorite"})
    assert r.json()["data"] == {
        "feature": "can_favorite",
        "from_tier": "free",
        "tier": "start",
        "name": "Start",
    }


def test_upsell_unknown_feature(client):
    r = client.get("/plans/upsell", params={"feature": "nope"})
    assert r.status_code == 422


# -- internal routes --------------------------------------------------------

@pytest.fixture
def internal_token(monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_API_TOKEN", "s3cret")
    return {"X-Internal-Token": "s3cret"}


def test_internal_routes_disabled_without_token(db_session, client, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_API_TOKEN", "")
    r = client.post("/internal/trash/sweep", headers={"X-Internal-Token": "anything"})
    assert r.status_code == 404


def test_internal_routes_reject_wrong_token(db_session, client, internal_token):
    r = client.post("/internal/trash/sweep", headers={"X-Internal-Token": "wrong"})
    assert r.status_code == 403
    assert client.post("/internal/trash/sweep").status_code == 403


def test_internal_routes_reject_non_ascii_token(db_session, client, internal_token):
    token = "s\u00e9cret".encode("latin-1")
    r = client.post("/internal/trash/sweep", headers={"X-Internal-Token": token})
    assert r.status_code == 403


def test_plan_change_downgrade(db_session, client, make_account, make_gallery, internal_token):
    owner = make_account(plan="pro")
    galleries = [make_gallery(owner, event_date=datetime(2026, 1, d)) for d in (1, 2, 3, 4)]

    r = client.post(
        "/internal/plan-change",
        json={"user_id": owner.UserID, "new_plan": "free"},
        headers=internal_token,
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"]["archived_count"] == 2

    db_session.expire_all()
    assert db_session.get(Account, owner.UserID).PlanKey == "free"
    archived = {
        g.GalleryID for g in db_session.query(Gallery).filter(Gallery.IsArchived).all()
    }
    assert archived == {galleries[0].GalleryID, galleries[1].GalleryID}
    assert db_session.query(PlanChangeAudit).filter(PlanChangeAudit.UserID == owner.UserID).count() == 1


def test_plan_change_validation(db_session, client, make_account, internal_token):
    owner = make_account()
    r = client.post(
        "/internal/plan-change",
        json={"user_id": owner.UserID, "new_plan": "platinum"},
        headers=internal_token,
    )
    assert r.status_code == 422

    r = client.post(
        "/internal/plan-change",
        json={"user_id": 987654, "new_plan": "pro"},
        headers=internal_token,
    )
    assert r.status_code == 404


def test_trash_sweep_endpoint(db_session, client, make_account, make_gallery, internal_token):
    owner = make_account()
    old = make_gallery(owner, deleted_at=datetime(2020, 1, 1))
    fresh = make_gallery(owner, deleted_at=datetime.now() - timedelta(days=1))
    old_id, old_slug = old.GalleryID, old.Slug

    r = client.post("/internal/trash/sweep", json={"retention_days": 30}, headers=internal_token)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["count"] == 1
    assert data["purged"][0]["gallery_id"] == old_id
    assert data["purged"][0]["slug"] == old_slug

    db_session.expire_all()
    assert db_session.get(Gallery, fresh.GalleryID) is not None
