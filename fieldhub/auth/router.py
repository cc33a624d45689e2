from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..logging import structlog
from ..models.models import User
from ..schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)
from .security import (
    create_access_token,
    get_current_user,
    get_password_hash,
    require_roles,
    verify_password,
)


router = APIRouter(prefix="/api", tags=["auth"])
logger = structlog.get_logger(__name__)


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id, user.role),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(req: RegisterRequest, db: Session = Depends(get_db)):
    """Self-service sign-up. Always creates a client; staff accounts come from seeding or an admin."""
    if db.query(User).filter(User.username == req.username).first():
        raise HTTPException(status_code=400, detail="Username already exists")
    user = User(
        username=req.username,
        password_hash=get_password_hash(req.password),
        name=req.name,
        email=req.email,
        phone=req.phone,
        role="client",
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_registered", user_id=user.id)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == req.username).first()
    if not user or not user.is_active or not verify_password(req.password, user.password_hash):
        logger.info("login_failed", username=req.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    logger.info("login_succeeded", user_id=user.id)
    return _token_response(user)


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy
    logger.info("logout", user_id=user.id)
    return {"success": True}


@router.get("/user", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/change-password")
def change_password(
    req: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not verify_password(req.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    user.password_hash = get_password_hash(req.new_password)
    db.commit()
    logger.info("password_changed", user_id=user.id)
    return {"success": True}


@router.post("/reset-password")
def reset_password(
    req: ResetPasswordRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles("admin")),
):
    target = db.query(User).filter(User.id == req.user_id).first()
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    target.password_hash = get_password_hash(req.new_password)
    db.commit()
    logger.info("password_reset", user_id=target.id, reset_by=admin.id)
    return {"success": True}
