"""
User accounts: registration and credential checks
"""
import logging
from typing import Optional, Literal

from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from directory_api.auth.passwords import hash_password, verify_password
from directory_api.core.exceptions import ConflictError
from directory_api.core.schemas import CamelModel
from directory_api.db.models import User

logger = logging.getLogger(__name__)


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = None
    role: Literal["customer", "provider"] = "customer"


class UserService:

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def find_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.lower()).first()

    def find_by_id(self, db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    def create(self, db: Session, data: UserCreate) -> User:
        if self.find_by_email(db, data.email):
            raise ConflictError("User already exists with this email")

        user = User(
            email=data.email.lower(),
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=data.role,
        )
        try:
            db.add(user)
            db.commit()
            db.refresh(user)
        except Exception:
            db.rollback()
            raise

        self.logger.info(f"Registered user {user.id} with role {user.role}")
        return user

    def authenticate(self, db: Session, email: str, password: str) -> Optional[User]:
        """Return the user for valid credentials, else None"""
        user = self.find_by_email(db, email)
        if not user or not verify_password(password, user.password_hash):
            return None
        return user


def get_user_service() -> UserService:
    return UserService()
