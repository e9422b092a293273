"""
ReclamAssur - Authentication Router
Handles user registration, admin registration by invitation, login and profile.
"""
from uuid import uuid4
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import AppRole, ProfileDB
from ..auth import (
    hash_password, verify_password, create_access_token, decode_token,
    get_current_user, security
)
from ..services.user_service import UserService, get_user_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < 8:
            raise ValueError('Le mot de passe doit contenir au moins 8 caractères')
        return v


class AdminRegisterRequest(RegisterRequest):
    invite_code: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str = "user"


class MessageResponse(BaseModel):
    message: str


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < 8:
            raise ValueError('Le mot de passe doit contenir au moins 8 caractères')
        return v

    @field_validator('confirm_password')
    @classmethod
    def passwords_match(cls, v, info):
        if 'new_password' in info.data and v != info.data['new_password']:
            raise ValueError('Les mots de passe ne correspondent pas')
        return v


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str = "user"
    created_at: Optional[str] = None


def _user_response(user: ProfileDB, db: Session) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        role=get_user_role(db, user.id).value,
        created_at=user.created_at.isoformat() if user.created_at else None,
    )


def _create_profile(db: Session, request: RegisterRequest) -> ProfileDB:
    email = request.email.lower()
    if db.query(ProfileDB).filter(ProfileDB.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email déjà enregistré"
        )
    user = ProfileDB(
        id=str(uuid4()),
        email=email,
        password_hash=hash_password(request.password),
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
    )
    db.add(user)
    return user


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new client account.
    """
    user = _create_profile(db, request)
    UserService(db).set_role(user.id, AppRole.USER)
    db.commit()

    logger.info(f"User registered: {user.email}")
    return MessageResponse(message="Compte créé avec succès")


@router.post("/admin-register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def admin_register(request: AdminRegisterRequest, db: Session = Depends(get_db)):
    """
    Register an administrator with a valid invitation code.
    """
    service = UserService(db)
    invitation = service.find_valid_invite(request.invite_code, request.email)

    user = _create_profile(db, request)
    db.flush()
    service.consume_invite(invitation, user.id)
    db.commit()

    logger.info(f"Admin registered with invitation: {user.email}")
    return MessageResponse(message="Compte administrateur créé avec succès")


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Authenticate user and return JWT token.
    """
    user = db.query(ProfileDB).filter(ProfileDB.email == request.email.lower()).first()

    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email ou mot de passe invalide",
            headers={"WWW-Authenticate": "Bearer"},
        )

    role = get_user_role(db, user.id).value
    access_token = create_access_token(user.id, user.email, role)

    logger.info(f"User logged in: {user.email}")
    return TokenResponse(access_token=access_token, role=role)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: ProfileDB = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Get current authenticated user info.
    """
    return _user_response(current_user, db)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: ProfileDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update the caller's name and phone number.
    """
    for key, value in request.model_dump(exclude_unset=True).items():
        setattr(current_user, key, value)
    db.commit()
    db.refresh(current_user)
    return _user_response(current_user, db)


@router.put("/password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_user: ProfileDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Change user password.
    Requires current password for verification.
    """
    if not verify_password(request.current_password, current_user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Mot de passe actuel incorrect"
        )

    current_user.password_hash = hash_password(request.new_password)
    db.commit()

    logger.info(f"Password changed for user: {current_user.email}")
    return MessageResponse(message="Mot de passe modifié")


@router.get("/diagnostics")
async def auth_diagnostics(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: ProfileDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Authentication state of the caller (user, role, token expiry).
    """
    return UserService(db).diagnose_auth_state(current_user, decode_token(credentials.credentials))
