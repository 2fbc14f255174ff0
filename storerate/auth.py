import time
from typing import Optional

import jwt
from passlib.context import CryptContext

from . import config

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
SESSION_COOKIE = "session"
SESSION_SECONDS = 60 * 60 * 24  # 1 day


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    # rows carried over from the plaintext era hold no recognisable hash
    if not hashed or pwd_context.identify(hashed) is None:
        return False
    return pwd_context.verify(plain, hashed)


def create_session_token(user_id: int, role: str, expires_delta: Optional[int] = None) -> str:
    """Signed value for the page session cookie. Not an API credential."""
    now = int(time.time())
    exp = now + (expires_delta or SESSION_SECONDS)
    payload = {"sub": str(user_id), "role": role, "iat": now, "exp": exp}
    return jwt.encode(payload, config.settings.session_secret, algorithm=ALGORITHM)


def decode_session_token(token: str) -> dict:
    return jwt.decode(token, config.settings.session_secret, algorithms=[ALGORITHM])
