"""
Income Proof - Authentication Router
Registration, login, the current account, and DID linking.
"""
import logging
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.orm import Session

from ..auth import (
    create_access_token,
    get_auth_settings,
    get_current_user,
    hash_password,
    validate_did,
    verify_password,
)
from ..config import AuthSettings
from ..database import get_db
from ..models.db_models import UserDB

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    did: Optional[str] = None

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        return v

    @field_validator('did')
    @classmethod
    def validate_did_format(cls, v):
        return validate_did(v) if v is not None else v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LinkDidRequest(BaseModel):
    did: str

    @field_validator('did')
    @classmethod
    def validate_did_format(cls, v):
        return validate_did(v)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    id: str
    email: str
    did: Optional[str] = None


def _did_taken(db: Session, did: str, user_id: Optional[str] = None) -> bool:
    query = db.query(UserDB).filter(UserDB.did == did)
    if user_id is not None:
        query = query.filter(UserDB.id != user_id)
    return query.first() is not None


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new account. A DID may be linked now or later via PUT /auth/did.
    """
    if db.query(UserDB).filter(UserDB.email == request.email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    if request.did and _did_taken(db, request.did):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="DID already linked to another account")

    user = UserDB(
        id=str(uuid4()),
        email=request.email,
        did=request.did,
        password_hash=hash_password(request.password),
    )
    db.add(user)
    db.commit()

    logger.info(f"User registered: {user.id}")
    return MessageResponse(message="User created successfully")


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    settings: AuthSettings = Depends(get_auth_settings),
):
    user = db.query(UserDB).filter(UserDB.email == request.email).first()
    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User logged in: {user.id}")
    return TokenResponse(access_token=create_access_token(user, settings))


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: UserDB = Depends(get_current_user)):
    return UserResponse(id=current_user.id, email=current_user.email, did=current_user.did)


@router.put("/did", response_model=UserResponse)
async def link_did(
    request: LinkDidRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Link the DID the indexer records this user's proofs under.

    Tokens issued before the change keep the old claim until the next login.
    """
    if _did_taken(db, request.did, current_user.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="DID already linked to another account")

    current_user.did = request.did
    db.commit()
    logger.info(f"DID linked for user {current_user.id}")
    return UserResponse(id=current_user.id, email=current_user.email, did=current_user.did)
