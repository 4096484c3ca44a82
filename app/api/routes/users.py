from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.auth import UserResponse, UserUpdate
from app.services.ai_client import MODELS
from app.utils.encryption import encrypt_token

router = APIRouter()


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "plan": user.plan,
        "role": user.role,
        "status": user.status,
        "bl_coins": user.bl_coins,
        "referral_code": user.referral_code,
        "referral_count": user.referral_count or 0,
        "scans_limit": user.scans_limit,
        "builds_limit": user.builds_limit,
        "max_sites": user.max_sites,
        "billing_interval": user.billing_interval,
        "preferred_ai": user.preferred_ai,
        "has_github_token": bool(user.github_token),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


@router.get("/me", response_model=UserResponse)
def get_me(user: User = Depends(get_current_user)):
    """Get current user profile"""
    return _user_payload(user)


@router.put("/me", response_model=UserResponse)
def update_me(
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Update profile fields, preferred model and GitHub token"""
    if user_data.name is not None:
        user.name = user_data.name.strip()
    if user_data.preferred_ai is not None:
        if user_data.preferred_ai not in MODELS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown AI model: {user_data.preferred_ai}"
            )
        user.preferred_ai = user_data.preferred_ai
    if user_data.github_token is not None:
        token = user_data.github_token.strip()
        user.github_token = encrypt_token(token) if token else None

    db.commit()
    db.refresh(user)
    return _user_payload(user)
