from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from db import get_db
from gallerydesk.core.plan_features import (
    FEATURE_KINDS,
    PERMISSION_MATRIX,
    PlanTier,
    plan_summary,
    resolve_tier,
)
from gallerydesk.models.account import Account
from gallerydesk.services.identity import require_account
from gallerydesk.services.quota import can_create

router = APIRouter(prefix="/plans", tags=["plans"])


@router.get("")
def list_plans():
    return JSONResponse(
        {
            "success": True,
            "data": {
                "version": PERMISSION_MATRIX.version,
                "plans": [plan_summary(t) for t in PlanTier],
            },
        }
    )


@router.get("/current")
def current_plan(db: Session = Depends(get_db), account: Account = Depends(require_account)):
    tier = resolve_tier(account.PlanKey)
    data = plan_summary(tier)
    data["galleries"] = can_create(db, account.UserID, tier).to_dict()
    return JSONResponse({"success": True, "data": data})


@router.get("/upsell")
def upsell(feature: str = Query(...), from_tier: Optional[str] = Query(None)):
    """Which tier to pitch when a user hits a locked feature."""
    if feature not in FEATURE_KINDS:
        return JSONResponse(
            {"success": False, "error": f"Unknown feature {feature!r}.", "code": "validation"},
            status_code=422,
        )
    start = resolve_tier(from_tier)
    target = PERMISSION_MATRIX.next_tier_with_feature(start, feature)
    return JSONResponse(
        {
            "success": True,
            "data": {
                "feature": feature,
                "from_tier": start.code,
                "tier": target.code,
                "name": target.label,
            },
        }
    )
