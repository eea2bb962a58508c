import base64
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from errors import AuthError

# JWT Config
SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days


# Password codec
#
# Stored passwords are base64 of the UTF-8 bytes. Reversible, NOT a hash.

def encode_password(password: str) -> str:
    return base64.b64encode(password.encode("utf-8")).decode("ascii")


def decode_password(encoded: str) -> str:
    return base64.b64decode(encoded.encode("ascii")).decode("utf-8")


def verify_password(plain_password: str, encoded_password: str) -> bool:
    return encode_password(plain_password) == encoded_password


# Tokens

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise AuthError("Invalid or expired token")
