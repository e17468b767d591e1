from datetime import timedelta

from gallerydesk.core.clock import utcnow
from gallerydesk.models import AccountSession, Gallery


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.headers.get("X-Request-ID")


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"


def test_galleries_require_login(db_session, client):
    r = client.get("/galleries")
    assert r.status_code == 401
    assert r.json()["detail"] == "Not authenticated"


def test_expired_session_is_rejected(db_session, client, make_account):
    owner = make_account()
    sess = AccountSession(UserID=owner.UserID, ExpiresAt=utcnow() - timedelta(minutes=1))
    db_session.add(sess)
    db_session.commit()
    client.cookies.set("session_id", sess.SessionID)
    assert client.get("/galleries").status_code == 401


def test_session_header_is_accepted(db_session, client, make_account):
    owner = make_account()
    sess = AccountSession(UserID=owner.UserID, ExpiresAt=utcnow() + timedelta(hours=1))
    db_session.add(sess)
    db_session.commit()
    r = client.get("/galleries", headers={"X-Session-ID": sess.SessionID})
    assert r.status_code == 200
    assert r.json() == {"success": True, "data": {"galleries": []}}


def test_create_and_list(db_session, client, make_account, login):
    owner = make_account("hitalo")
    login(owner)

    r = client.post(
        "/galleries",
        json={"title": "Casamento José & Maria!", "event_date": "2026-01-01T00:00:00"},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["data"]["slug"] == "hitalo/2026/01/01/casamento-jose-e-maria"

    r = client.get("/galleries", params={"status": "active"})
    assert r.status_code == 200
    assert [g["slug"] for g in r.json()["data"]["galleries"]] == [body["data"]["slug"]]


def test_create_blank_title_is_validation_error(db_session, client, make_account, login):
    login(make_account())
    r = client.post("/galleries", json={"title": "  ", "event_date": "2026-01-01T00:00:00"})
    assert r.status_code == 422
    assert r.json()["code"] == "validation"


def test_create_at_limit_returns_403(db_session, client, make_account, make_gallery, login):
    owner = make_account(plan="free")
    make_gallery(owner)
    make_gallery(owner)
    login(owner)

    r = client.get("/galleries/quota")
    assert r.status_code == 200
    quota = r.json()["data"]
    assert quota == {
        "allowed": False,
        "current_count": 2,
        "limit": 2,
        "message": quota["message"],
        "tier": "free",
    }

    r = client.post("/galleries", json={"title": "Third", "event_date": "2026-01-01T00:00:00"})
    assert r.status_code == 403
    body = r.json()
    assert body["code"] == "quota_exceeded"
    assert body["data"]["limit"] == 2
    assert body["error"] == quota["message"]
    assert db_session.query(Gallery).filter(Gallery.UserID == owner.UserID).count() == 2


def test_lifecycle_over_http(db_session, client, make_account, make_gallery, login):
    owner = make_account()
    g = make_gallery(owner)
    gid = g.GalleryID
    login(owner)

    assert client.post(f"/galleries/{gid}/archive").json()["data"]["state"] == "archived"
    assert client.get(f"/galleries/{gid}/quota").json()["data"]["allowed"] is True
    assert client.post(f"/galleries/{gid}/unarchive").json()["data"]["state"] == "active"

    r = client.delete(f"/galleries/{gid}")
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_transition"

    trashed = client.post(f"/galleries/{gid}/trash").json()["data"]
    assert trashed["state"] == "trashed"
    assert trashed["purge_after"]

    listed = client.get("/galleries", params={"status": "trashed"}).json()["data"]["galleries"]
    assert [x["id"] for x in listed] == [gid]

    assert client.post(f"/galleries/{gid}/restore").json()["data"]["state"] == "active"
    client.post(f"/galleries/{gid}/trash")
    r = client.delete(f"/galleries/{gid}")
    assert r.status_code == 200
    assert r.json()["data"]["state"] == "purged"
    assert client.get(f"/galleries/{gid}").status_code == 404


def test_visibility_toggle(db_session, client, make_account, make_gallery, login):
    owner = make_account()
    g = make_gallery(owner)
    login(owner)
    r = client.post(f"/galleries/{g.GalleryID}/visibility")
    assert r.status_code == 200
    assert r.json()["data"]["show_on_profile"] is False


def test_patch_renames_gallery(db_session, client, make_account, login):
    owner = make_account("ana")
    login(owner)
    gid = client.post(
        "/galleries", json={"title": "Ensaio", "event_date": "2026-01-01T00:00:00"}
    ).json()["data"]["id"]

    r = client.patch(f"/galleries/{gid}", json={"title": "Ensaio Gestante", "client_name": "Bia"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["slug"] == "ana/2026/01/01/ensaio-gestante"
    assert data["client_name"] == "Bia"


def test_patch_archived_gallery_conflicts(db_session, client, make_account, make_gallery, login):
    owner = make_account()
    g = make_gallery(owner, archived=True)
    login(owner)
    r = client.patch(f"/galleries/{g.GalleryID}", json={"title": "Nope"})
    assert r.status_code == 409
    assert r.json()["code"] == "archived_read_only"


def test_foreign_gallery_is_404(db_session, client, make_account, make_gallery, login):
    owner = make_account()
    g = make_gallery(owner)
    login(make_account())

    for path in ("archive", "trash", "visibility"):
        r = client.post(f"/galleries/{g.GalleryID}/{path}")
        assert r.status_code == 404
        assert r.json()["error"] == "Gallery not found."
    assert client.delete(f"/galleries/{g.GalleryID}").status_code == 404
    assert client.get(f"/galleries/{g.GalleryID}/quota").status_code == 404


def test_unknown_status_filter(db_session, client, make_account, login):
    login(make_account())
    r = client.get("/galleries", params={"status": "purged"})
    assert r.status_code == 422
    assert r.json()["code"] == "validation"
