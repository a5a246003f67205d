"""
Authentication dependencies for FastAPI routes
"""
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from directory_api.db.database import get_db
from directory_api.db.models import User, Business
from directory_api.auth.jwt_handler import jwt_handler
from directory_api.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError

# Security scheme; missing headers are reported through our own error envelope
security = HTTPBearer(auto_error=False)


async def get_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> str:
    """Extract JWT token from Authorization header"""
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Authentication token required", code="AUTH_REQUIRED")
    return credentials.credentials


async def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(get_token)
) -> User:
    """Resolve the bearer token to a user row"""
    payload = jwt_handler.verify_token(token)
    user_id = payload.get("sub")

    if not user_id:
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthenticationError("User no longer exists")

    return user


def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current active user from database"""
    if not current_user.is_active:
        raise AuthorizationError("User account is inactive")
    return current_user


def get_provider_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """Require a provider or admin account"""
    if current_user.role not in ("provider", "admin"):
        raise AuthorizationError("Only business owners can perform this action")
    return current_user


def get_admin_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """Require an admin account"""
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user


def ensure_business_access(business: Business, user: User) -> None:
    """Owner-or-admin check, applied per route"""
    if business.owner_id != user.id and not user.is_admin:
        raise AuthorizationError("Not authorized to access this business")


def load_business_for_user(db: Session, business_id: str, user: User) -> Business:
    """Fetch a non-deleted business and apply the owner-or-admin check"""
    business = db.query(Business).filter(
        Business.id == business_id,
        Business.status != "deleted"
    ).first()
    if not business:
        raise NotFoundError("Business not found")
    ensure_business_access(business, user)
    return business
