"""
Admin console routes. Each endpoint is gated by a single permission from the
role policy table, and every change writes an AdminLog row.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.core.roles import PERMISSIONS, ROLES, granted_permissions
from app.db.session import get_db
from app.dependencies.auth import require_admin, require_permission
from app.models.admin_log import AdminAction, AdminLog
from app.models.user import User
from app.schemas.billing import CoinAdjustmentRequest, PlanOverrideRequest, RoleChangeRequest
from app.services import ai_client, coin_ledger, plan_sync, usage_counter

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_target(db: Session, user_id: int) -> User:
    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return target


def _audit(
    db: Session,
    actor: User,
    action: AdminAction,
    target: User,
    description: str,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    severity: str = "info",
) -> AdminLog:
    entry = AdminLog(
        actor_id=actor.id,
        actor_email=actor.email,
        actor_role=actor.role,
        action=action.value,
        target_user_id=target.id,
        target_email=target.email,
        description=description,
        before_state=before,
        after_state=after,
        severity=severity,
    )
    db.add(entry)
    db.commit()
    logger.info("[Admin] %s by %s on %s: %s", action.value, actor.email, target.email, description)
    return entry


@router.get("/users/{user_id}")
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Account overview for the admin console: plan, balance, usage and recent ledger."""
    target = _get_target(db, user_id)
    return {
        "id": target.id,
        "email": target.email,
        "name": target.name,
        "plan": target.plan,
        "role": target.role,
        "status": target.status,
        "permissions": sorted(granted_permissions(target)),
        "balance": target.bl_coins,
        "maxSites": target.max_sites,
        "dailyUsage": usage_counter.usage_snapshot(target),
        "transactions": [t.to_dict() for t in coin_ledger.recent_transactions(db, target, limit=20)],
    }


@router.post("/users/{user_id}/coins")
def adjust_coins(
    user_id: int,
    request: CoinAdjustmentRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_permission("adjustCoins")),
):
    if request.amount == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Amount must be non-zero"
        )
    target = _get_target(db, user_id)
    before = target.bl_coins
    entry = coin_ledger.adjust(db, target, request.amount, f"Admin adjustment: {request.reason}")
    _audit(
        db,
        admin,
        AdminAction.COIN_ADJUSTMENT,
        target,
        f"{request.amount:+,} BL ({request.reason})",
        before={"balance": before},
        after={"balance": entry.balance},
        severity="warning" if abs(request.amount) >= 1_000_000 else "info",
    )
    return {"success": True, "balance": entry.balance, "transaction": entry.to_dict()}


@router.post("/users/{user_id}/plan")
def override_plan(
    user_id: int,
    request: PlanOverrideRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_permission("adjustPricing")),
):
    target = _get_target(db, user_id)
    try:
        previous = plan_sync.override_plan(db, target, request.plan)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    _audit(
        db,
        admin,
        AdminAction.PLAN_OVERRIDE,
        target,
        f"Plan {previous} -> {request.plan}" + (f" ({request.reason})" if request.reason else ""),
        before={"plan": previous},
        after={"plan": target.plan, "max_sites": target.max_sites},
    )
    return {"success": True, "plan": target.plan, "max_sites": target.max_sites}


@router.post("/users/{user_id}/role")
def change_role(
    user_id: int,
    request: RoleChangeRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_permission("manageRoles")),
):
    if request.role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role: {request.role}"
        )
    unknown = set(request.permissions or {}) - set(PERMISSIONS)
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown permissions: {', '.join(sorted(unknown))}"
        )
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot change your own role"
        )

    target = _get_target(db, user_id)
    before = {"role": target.role, "permissions": dict(target.permissions or {})}
    target.role = request.role
    if request.permissions is not None:
        target.permissions = dict(request.permissions)
    db.commit()
    db.refresh(target)

    action = AdminAction.ROLE_CHANGE if before["role"] != target.role else AdminAction.PERMISSION_CHANGE
    _audit(
        db,
        admin,
        action,
        target,
        f"Role {before['role']} -> {target.role}",
        before=before,
        after={"role": target.role, "permissions": dict(target.permissions or {})},
        severity="critical" if target.role == "super-admin" else "warning",
    )
    return {"success": True, "role": target.role, "permissions": target.permissions or {}}


@router.get("/logs")
def get_logs(
    limit: int = 100,
    action: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_permission("viewSecurityLogs")),
):
    query = db.query(AdminLog)
    if action:
        query = query.filter(AdminLog.action == action)
    logs = query.order_by(AdminLog.id.desc()).limit(max(1, min(limit, 500))).all()
    return {"logs": [log.to_dict() for log in logs]}


@router.get("/ai-status")
def get_ai_status(admin: User = Depends(require_permission("manageAI"))):
    return ai_client.verify_ai_status()
