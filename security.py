import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET
from database import get_db, to_object_id
from errors import Unauthenticated, Unauthorized
from schemas import Role

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


# Utilities

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid token")


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None


def authenticate(db: Database, token: str) -> AuthContext:
    """Resolve a bearer token to the user it was issued for."""
    payload = decode_token(token)
    user_oid = to_object_id(payload.get("sub"))
    if user_oid is None:
        raise Unauthenticated("Invalid token")
    user = db["user"].find_one({"_id": user_oid}, {"role": 1})
    if not user:
        raise Unauthenticated("User not found")
    return AuthContext(user_id=str(user_oid), role=user.get("role", Role.USER.value))


# Dependencies

def get_optional_auth(
    authorization: Optional[str] = Header(default=None),
    db: Database = Depends(get_db),
) -> Optional[AuthContext]:
    """Caller identity when a valid token is present, ``None`` otherwise."""
    token = _bearer_token(authorization)
    if token is None:
        return None
    try:
        return authenticate(db, token)
    except Unauthenticated:
        logger.info("Token verification failed, continuing as guest")
        return None


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Database = Depends(get_db),
) -> AuthContext:
    token = _bearer_token(authorization)
    if token is None:
        raise Unauthenticated()
    return authenticate(db, token)


def get_current_admin(current_user: AuthContext = Depends(get_current_user)) -> AuthContext:
    if not current_user.is_admin:
        raise Unauthorized()
    return current_user


# Capability checks

def owns(auth: Optional[AuthContext], owner_id) -> bool:
    return auth is not None and owner_id is not None and str(owner_id) == auth.user_id
