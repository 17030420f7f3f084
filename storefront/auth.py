from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from .errors import AuthError, ForbiddenError
from .models import User, UserRole

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error=False so a missing header is reported as 401 by us, not by FastAPI
security = HTTPBearer(auto_error=False)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(user: User, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    role = user.role.value if isinstance(user.role, UserRole) else str(user.role)
    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict:
    """Resolve a bearer token to ``{"id", "email", "role"}`` or raise AuthError."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise AuthError("Invalid or expired token")

    sub = payload.get("sub")
    if sub is None or not str(sub).isdigit():
        raise AuthError("Invalid or expired token")

    return {
        "id": int(sub),
        "email": payload.get("email"),
        "role": payload.get("role", UserRole.CUSTOMER.value),
    }


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict:
    if credentials is None or not credentials.credentials:
        raise AuthError("Token not provided")
    return decode_access_token(credentials.credentials)


def get_current_admin(current_user: Dict = Depends(get_current_user)) -> Dict:
    if current_user.get("role") != UserRole.ADMIN.value:
        raise ForbiddenError("Access denied. Admin privileges required.")
    return current_user
