"""Password and token handling for the remote-access mirror."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..config.constants import REMOTE_TOKEN_ALGORITHM, REMOTE_TOKEN_TTL_HOURS

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72

# auto_error=False so a missing header is a 401 and a bad token a 403
bearer_scheme = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode('utf-8')[:BCRYPT_MAX_BYTES], bcrypt.gensalt()).decode('ascii')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8')[:BCRYPT_MAX_BYTES], hashed_password.encode('ascii'))
    except ValueError:
        return False


def is_bcrypt_hash(value: str) -> bool:
    return value.startswith(('$2a$', '$2b$', '$2y$'))


class RemoteAuth:
    """
    Issues and checks bearer tokens for one server instance.

    With no password configured the server runs in development mode and any
    non-empty password logs in.
    """

    def __init__(
        self,
        password: str = "",
        secret_key: Optional[str] = None,
        ttl_hours: int = REMOTE_TOKEN_TTL_HOURS
    ):
        """
        Initialize remote auth.

        Args:
            password: Plain password or an existing bcrypt hash ('' = development mode)
            secret_key: Token signing key (random per process if None)
            ttl_hours: Token lifetime
        """
        if password and not is_bcrypt_hash(password):
            password = get_password_hash(password)
        self.password_hash = password
        self.secret_key = secret_key or secrets.token_urlsafe(32)
        self.ttl = timedelta(hours=ttl_hours)

    @property
    def development_mode(self) -> bool:
        return not self.password_hash

    def check_password(self, password: str) -> bool:
        if not password:
            return False
        if self.development_mode:
            return True
        return verify_password(password, self.password_hash)

    def create_access_token(self) -> str:
        expire = datetime.now(timezone.utc) + self.ttl
        claims = {"sub": "remote_user", "type": "access", "exp": expire}
        return jwt.encode(claims, self.secret_key, algorithm=REMOTE_TOKEN_ALGORITHM)

    def verify_token(self, token: str) -> Optional[dict]:
        """Decode a token; None if the signature, expiry or type is wrong."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[REMOTE_TOKEN_ALGORITHM])
        except JWTError:
            return None
        if payload.get("type") != "access":
            return None
        return payload

    def require_token(self, credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
        """Check the bearer credentials of a request."""
        if credentials is None or not credentials.credentials:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Access token required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        payload = self.verify_token(credentials.credentials)
        if payload is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid access token")
        return payload
