import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from errors import InvalidToken

# JWT Config
SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))  # 7 days
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 10))

MIN_PASSWORD_LENGTH = 8

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def token_claims(user: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": user["id"], "email": user["email"], "firstName": user.get("first_name")}


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None,
                        secret: Optional[str] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret or SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str, secret: Optional[str] = None) -> dict:
    try:
        payload = jwt.decode(token, secret or SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise InvalidToken("Invalid or expired token")
    if not isinstance(payload.get("id"), str) or not payload.get("email"):
        raise InvalidToken("Malformed token payload")
    return payload
