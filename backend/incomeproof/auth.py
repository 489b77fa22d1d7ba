"""
Income Proof - Authentication Utilities
Password hashing, bearer tokens, and the current-user dependency.

Tokens carry the user id (sub), email and, once linked, the user's DID.
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .config import AuthSettings
from .database import get_db
from .models.db_models import UserDB

logger = logging.getLogger(__name__)

security = HTTPBearer()

DID_PATTERN = re.compile(r"^did:[a-z0-9]+:[A-Za-z0-9._:%-]+$")


def validate_did(did: str) -> str:
    if not DID_PATTERN.match(did):
        raise ValueError("DID must look like did:<method>:<identifier>")
    return did


def hash_password(password: str) -> str:
    """bcrypt hash with a fresh salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(user: UserDB, settings: AuthSettings) -> str:
    claims: Dict[str, Any] = {
        "sub": user.id,
        "email": user.email,
        "exp": datetime.utcnow() + timedelta(hours=settings.access_token_expire_hours),
    }
    if user.did:
        claims["did"] = user.did
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str, settings: AuthSettings) -> Optional[Dict[str, Any]]:
    """Claims of a valid token; None for a bad signature or an expired token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        return None


def get_auth_settings(request: Request) -> AuthSettings:
    return request.app.state.settings.auth


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: AuthSettings = Depends(get_auth_settings),
    db: Session = Depends(get_db),
) -> UserDB:
    """Resolve the bearer token to a user row, or 401."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    claims = decode_token(credentials.credentials, settings)
    user_id = claims.get("sub") if claims else None
    if not user_id:
        raise unauthorized

    user = db.get(UserDB, user_id)
    if user is None:
        raise unauthorized
    return user
