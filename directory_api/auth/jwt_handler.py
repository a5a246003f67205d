"""
JWT issuing and verification for local authentication
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from directory_api.core.config import get_settings
from directory_api.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class JWTHandler:
    """Signs and verifies HS256 access tokens"""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None, expire_days: Optional[int] = None):
        settings = get_settings()
        self.secret = secret or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.expire_days = expire_days if expire_days is not None else settings.jwt_expire_days

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(days=self.expire_days))
        to_encode.update({"exp": expire, "iat": now, "type": "access"})
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Decode ``token``; raise AuthenticationError if it is expired or invalid"""
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise AuthenticationError("Token expired", code="TOKEN_EXPIRED")
        except JWTError as e:
            logger.debug(f"Rejected token: {e}")
            raise AuthenticationError("Invalid token", code="INVALID_TOKEN")


jwt_handler = JWTHandler()
