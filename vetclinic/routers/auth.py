# vetclinic/routers/auth.py
from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from .. import crud, schemas, security, models
from ..compliance_logger import compliance_logger
from ..database import get_db
from ..errors import Unauthenticated

import logging

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)


@router.post("/register", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    """Sign up a practitioner. The profile is created on its first save."""
    return crud.create_user(db, user)


@router.post("/token", response_model=schemas.TokenResponse)
def login_for_access_token(
    request: Request,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    user = crud.authenticate_user(db, email=form_data.username, password=form_data.password)
    if not user:
        logger.warning(f"Failed login attempt for: {form_data.username}")
        compliance_logger.log_event(
            user_id=None, action=models.AuditAction.ACCESS_DENIED, category="AUTH",
            details="Failed login attempt", severity="WARNING",
            ip_address=security.client_ip(request),
        )
        raise Unauthenticated("Incorrect email or password")

    compliance_logger.log_event(
        user_id=user.id, action=models.AuditAction.LOGIN, category="AUTH",
        details="Login succeeded", ip_address=security.client_ip(request),
    )
    logger.info(f"User {user.id} successfully authenticated.")

    access_token = security.create_access_token(data={"sub": user.email, "user_id": user.id})
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": security.settings.access_token_expire_minutes * 60,
        "user": user,
    }


@router.get("/me", response_model=schemas.UserResponse)
async def read_users_me(current_user: models.User = Depends(security.get_current_user)):
    """
    Get the current logged in practitioner's account.
    """
    return current_user
