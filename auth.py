import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from bson import ObjectId
from fastapi import Depends, Header
from pymongo.database import Database

from database import get_db
from errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_LIFETIME_DAYS = int(os.getenv("JWT_LIFETIME_DAYS", "7"))


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def create_token(user_doc: dict) -> str:
    payload = {
        "sub": str(user_doc["_id"]),
        "email": user_doc["email"],
        "name": user_doc["name"],
        "role": user_doc.get("role", "user"),
        "exp": datetime.now(timezone.utc) + timedelta(days=JWT_LIFETIME_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.PyJWTError:
        raise Unauthenticated()


def current_user(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)) -> dict:
    if not authorization:
        raise Unauthenticated()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise Unauthenticated()
    payload = decode_token(token)
    sub = payload.get("sub")
    if not ObjectId.is_valid(sub):
        raise Unauthenticated()
    user = db["user"].find_one({"_id": ObjectId(sub)})
    if not user:
        raise Unauthenticated()
    user["id"] = str(user["_id"])
    return user


def is_admin(user: dict) -> bool:
    return user.get("role") == "admin"


def require_admin(user: dict = Depends(current_user)) -> dict:
    if not is_admin(user):
        raise Forbidden(f"User role {user.get('role')} is not authorized to access this route")
    return user
