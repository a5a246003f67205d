"""
Registration, login and current-user endpoints
"""
import logging

from fastapi import APIRouter, Depends, status
from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from directory_api.auth.dependencies import get_current_active_user
from directory_api.auth.jwt_handler import jwt_handler
from directory_api.core.exceptions import AuthenticationError, AuthorizationError
from directory_api.core.schemas import CamelModel
from directory_api.db.database import get_db
from directory_api.db.models import User
from directory_api.services.user_service import UserCreate, get_user_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


def _issue_token(user: User) -> str:
    return jwt_handler.create_access_token({"sub": user.id, "email": user.email, "role": user.role})


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: UserCreate, db: Session = Depends(get_db)):
    """Create an account and return it with an access token"""
    user = get_user_service().create(db, request)
    return {
        "success": True,
        "message": "User registered successfully",
        "data": {"user": user.to_dict(), "token": _issue_token(user)},
    }


@router.post("/login")
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = get_user_service().authenticate(db, request.email, request.password)
    if not user:
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    if not user.is_active:
        raise AuthorizationError("Account is deactivated")

    logger.info(f"User {user.id} logged in")
    return {
        "success": True,
        "message": "Login successful",
        "data": {"user": user.to_dict(), "token": _issue_token(user)},
    }


@router.post("/logout")
async def logout():
    """Tokens are stateless; the client discards its copy"""
    return {"success": True, "message": "Logout successful"}


@router.get("/me")
async def me(current_user: User = Depends(get_current_active_user)):
    return {"success": True, "data": {"user": current_user.to_dict()}}
