"""Machine-to-machine routes for the billing workflow and the scheduler."""
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from db import get_db
from gallerydesk.core.plan_features import PlanTier
from gallerydesk.models.account import Account
from gallerydesk.services.downgrade import change_plan
from gallerydesk.services.identity import require_internal_token
from gallerydesk.services.retention import sweep

router = APIRouter(
    prefix="/internal", tags=["internal"], dependencies=[Depends(require_internal_token)]
)


class PlanChange(BaseModel):
    user_id: int
    new_plan: str


class SweepRequest(BaseModel):
    retention_days: Optional[int] = Field(default=None, ge=1)


@router.post("/plan-change")
def plan_change(body: PlanChange, db: Session = Depends(get_db)):
    code = body.new_plan.strip().lower()
    if code not in {t.code for t in PlanTier}:
        return JSONResponse(
            {"success": False, "error": f"Unknown plan {body.new_plan!r}.", "code": "validation"},
            status_code=422,
        )
    account = db.query(Account).filter(Account.UserID == body.user_id).first()
    if account is None:
        return JSONResponse(
            {"success": False, "error": "Account not found.", "code": "not_found"}, status_code=404
        )
    result = change_plan(db, account, PlanTier[code.upper()])
    return JSONResponse(result.to_dict())


@router.post("/trash/sweep")
def trash_sweep(body: Optional[SweepRequest] = None, db: Session = Depends(get_db)):
    days = body.retention_days if body is not None else None
    purged = sweep(db, retention_days=days)
    return JSONResponse(
        {
            "success": True,
            "data": {
                "count": len(purged),
                "purged": [p._asdict() for p in purged],
            },
        }
    )
