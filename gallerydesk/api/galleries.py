from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from db import get_db
from gallerydesk.core.plan_features import resolve_tier
from gallerydesk.models.account import Account
from gallerydesk.models.gallery import GalleryState
from gallerydesk.services.gallery_service import ActionResult, ErrorCode, GalleryService
from gallerydesk.services.identity import require_account
from gallerydesk.services.quota import can_create, can_reactivate

router = APIRouter(prefix="/galleries", tags=["galleries"])

_LISTABLE = {s.value: s for s in (GalleryState.ACTIVE, GalleryState.ARCHIVED, GalleryState.TRASHED)}


class GalleryCreate(BaseModel):
    title: str
    event_date: datetime
    location: Optional[str] = None
    client_name: Optional[str] = None
    category: Optional[str] = None
    is_public: bool = True
    show_on_profile: bool = True


class GalleryUpdate(BaseModel):
    title: Optional[str] = None
    event_date: Optional[datetime] = None
    location: Optional[str] = None
    client_name: Optional[str] = None
    category: Optional[str] = None
    is_public: Optional[bool] = None


def respond(result: ActionResult, success_status: int = 200) -> JSONResponse:
    status = success_status if result.success else result.code.http_status
    return JSONResponse(result.to_dict(), status_code=status)


@router.get("")
def list_galleries(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    account: Account = Depends(require_account),
):
    state = None
    if status:
        state = _LISTABLE.get(status.strip().lower())
        if state is None:
            return respond(
                ActionResult.fail(
                    ErrorCode.VALIDATION,
                    f"Unknown status {status!r}; expected one of: {', '.join(_LISTABLE)}.",
                )
            )
    return respond(GalleryService(db).list_galleries(account, state))


@router.post("")
def create_gallery(
    body: GalleryCreate,
    db: Session = Depends(get_db),
    account: Account = Depends(require_account),
):
    result = GalleryService(db).create(
        account,
        title=body.title,
        event_date=body.event_date,
        location=body.location,
        client_name=body.client_name,
        category=body.category,
        is_public=body.is_public,
        show_on_profile=body.show_on_profile,
    )
    return respond(result, success_status=201)


@router.get("/quota")
def create_quota(db: Session = Depends(get_db), account: Account = Depends(require_account)):
    check = can_create(db, account.UserID, resolve_tier(account.PlanKey))
    return JSONResponse({"success": True, "data": check.to_dict()})


@router.get("/{gallery_id}")
def get_gallery(
    gallery_id: int, db: Session = Depends(get_db), account: Account = Depends(require_account)
):
    return respond(GalleryService(db).get(account, gallery_id))


@router.patch("/{gallery_id}")
def update_gallery(
    gallery_id: int,
    body: GalleryUpdate,
    db: Session = Depends(get_db),
    account: Account = Depends(require_account),
):
    changes = body.model_dump(exclude_unset=True)
    return respond(GalleryService(db).update(account, gallery_id, **changes))


@router.get("/{gallery_id}/quota")
def reactivate_quota(
    gallery_id: int, db: Session = Depends(get_db), account: Account = Depends(require_account)
):
    check = can_reactivate(db, account.UserID, resolve_tier(account.PlanKey), gallery_id)
    if check is None:
        return respond(ActionResult.fail(ErrorCode.NOT_FOUND, "Gallery not found."))
    return JSONResponse({"success": True, "data": check.to_dict()})


@router.post("/{gallery_id}/archive")
def archive_gallery(
    gallery_id: int, db: Session = Depends(get_db), account: Account = Depends(require_account)
):
    return respond(GalleryService(db).archive(account, gallery_id))


@router.post("/{gallery_id}/unarchive")
def unarchive_gallery(
    gallery_id: int, db: Session = Depends(get_db), account: Account = Depends(require_account)
):
    return respond(GalleryService(db).unarchive(account, gallery_id))


@router.post("/{gallery_id}/trash")
def trash_gallery(
    gallery_id: int, db: Session = Depends(get_db), account: Account = Depends(require_account)
):
    return respond(GalleryService(db).trash(account, gallery_id))


@router.post("/{gallery_id}/restore")
def restore_gallery(
    gallery_id: int, db: Session = Depends(get_db), account: Account = Depends(require_account)
):
    return respond(GalleryService(db).restore(account, gallery_id))


@router.post("/{gallery_id}/visibility")
def toggle_gallery_visibility(
    gallery_id: int, db: Session = Depends(get_db), account: Account = Depends(require_account)
):
    return respond(GalleryService(db).toggle_visibility(account, gallery_id))


@router.delete("/{gallery_id}")
def purge_gallery(
    gallery_id: int, db: Session = Depends(get_db), account: Account = Depends(require_account)
):
    return respond(GalleryService(db).purge(account, gallery_id))
