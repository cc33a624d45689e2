from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..logging import structlog
from ..models.models import User
from ..schemas.auth import UserResponse, UserUpdate
from ..services import technicians as technician_service


router = APIRouter(prefix="/api/users", tags=["users"])
logger = structlog.get_logger(__name__)


@router.get("", response_model=List[UserResponse])
def list_users(
    q: Optional[str] = None,
    role: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    """
    List users with pagination

    Args:
        q: Search query (username, name or email)
        role: Only users holding this role
        page: Page number (1-indexed)
        limit: Number of items per page (default 50, max 200)
    """
    limit = min(max(1, limit), 200)
    page = max(1, page)
    offset = (page - 1) * limit

    query = db.query(User)
    if q:
        like = f"%{q}%"
        query = query.filter(
            (User.username.ilike(like)) |
            (User.name.ilike(like)) |
            (User.email.ilike(like))
        )
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.id).offset(offset).limit(limit).all()


@router.get("/technicians", response_model=List[UserResponse])
def list_technicians(
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return technician_service.list_technicians(db)


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles("admin")),
):
    """Profile, role and active flag. Passwords go through /api/reset-password."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is not None:
            setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info("user_updated", user_id=user.id, updated_by=admin.id, fields=sorted(changes))
    return user
