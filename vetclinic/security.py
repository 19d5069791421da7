import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from passlib.context import CryptContext
from cryptography.fernet import Fernet, InvalidToken
import logging
from .config import get_settings
from .database import get_db
from .errors import Unauthenticated
from . import models


security_logger = logging.getLogger("security")

settings = get_settings()

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__rounds=4,
    argon2__memory_cost=65536,
    argon2__parallelism=1,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/token")


class EncryptionService:
    """Encrypts national ID numbers (CPF) at rest."""

    def __init__(self, key: Optional[str] = None):
        self.master_key = key or settings.encryption_key
        if not self.master_key:
            # Generate a new key if not provided (for development only)
            self.master_key = Fernet.generate_key().decode()
            security_logger.warning("Using generated encryption key - not suitable for production")

        self.fernet = Fernet(self.master_key.encode())

    def encrypt(self, data: Optional[str]) -> Optional[bytes]:
        if not data:
            return None
        return self.fernet.encrypt(data.encode())

    def decrypt(self, encrypted_data: Optional[bytes]) -> Optional[str]:
        if not encrypted_data:
            return None
        try:
            return self.fernet.decrypt(encrypted_data).decode()
        except InvalidToken:
            # Key rotated without re-encrypting; the clear value is unrecoverable
            security_logger.error("Failed to decrypt a stored national ID with the configured key")
            return None


encryption_service = EncryptionService()


# Password utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # Unknown/legacy hash formats should not crash login; treat as non-match
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# JWT utilities
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "type": "access",
        "iat": datetime.now(timezone.utc),
        "jti": secrets.token_urlsafe(16),
    })

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])

        if payload.get("type") != token_type:
            return None

        return payload
    except JWTError:
        return None


# Dependencies for FastAPI
async def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> models.User:
    """Resolve the bearer token to an active practitioner account."""
    payload = verify_token(token, "access")
    if not payload:
        security_logger.info(f"Rejected bearer token on {request.url.path}")
        raise Unauthenticated()

    user_id = payload.get("user_id")
    if not payload.get("sub") or not user_id:
        raise Unauthenticated()

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user or not user.is_active:
        raise Unauthenticated()

    return user


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
