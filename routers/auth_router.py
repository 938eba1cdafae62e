from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db
from errors import Conflict, ValidationError
from schemas import Role, User
from security import AuthContext, create_access_token, get_current_user, hash_password, verify_password
from users import get_user, public_user

router = APIRouter(prefix="/api/auth", tags=["Auth"])


class RegisterInput(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginInput(BaseModel):
    email: EmailStr
    password: str


def _token_response(user: Dict[str, Any]) -> Dict[str, Any]:
    token = create_access_token({"sub": str(user["_id"])})
    return {"success": True, "data": {"token": token, "tokenType": "bearer", "user": public_user(user)}}


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterInput, db: Database = Depends(get_db)):
    email = payload.email.lower()
    if db["user"].find_one({"email": email}, {"_id": 1}):
        raise Conflict("Email already registered")
    user_model = User(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        role=Role.USER,
    )
    try:
        user_id = create_document(db, "user", user_model)
    except DuplicateKeyError:
        raise Conflict("Email already registered")
    return _token_response(db["user"].find_one({"_id": user_id}))


@router.post("/login")
def login(payload: LoginInput, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise ValidationError("Invalid email or password", code="invalid_credentials")
    return _token_response(user)


@router.get("/me")
def me(current_user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": public_user(get_user(db, current_user.user_id))}
