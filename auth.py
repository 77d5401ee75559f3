"""
Operator authentication and the admin shell.

There is exactly one operator, configured from the environment. A session is
a signed JWT; signing out revokes the token id for the lifetime of the
process.
"""
import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, NamedTuple, Optional, Sequence

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

# =====================
# Auth / Security Setup
# =====================
SECRET_KEY = os.getenv("JWT_SECRET", "super-secret-key-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 12

# pbkdf2_sha256 avoids the external bcrypt dependency
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@portfolio.dev")
# Either a precomputed hash or a plain password hashed at startup
ADMIN_PASSWORD_HASH = os.getenv("ADMIN_PASSWORD_HASH") or pwd_context.hash(os.getenv("ADMIN_PASSWORD", "admin123"))


class Session(NamedTuple):
    email: str
    role: str
    token_id: str
    expires_at: datetime


class SessionProvider:
    def __init__(
        self,
        email: str = ADMIN_EMAIL,
        password_hash: str = ADMIN_PASSWORD_HASH,
        secret_key: str = SECRET_KEY,
        expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
    ):
        self.email = email
        self.password_hash = password_hash
        self.secret_key = secret_key
        self.expire_minutes = expire_minutes
        # jti -> expiry, pruned once the token would have expired anyway
        self._revoked: Dict[str, datetime] = {}

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode.update({"exp": expire, "jti": uuid.uuid4().hex})
        return jwt.encode(to_encode, self.secret_key, algorithm=ALGORITHM)

    def login(self, email: str, password: str) -> Optional[str]:
        if email.lower() != self.email.lower() or not pwd_context.verify(password, self.password_hash):
            logger.warning("Failed login attempt for %s", email)
            return None
        logger.info("Operator %s logged in", self.email)
        return self.create_access_token({"sub": self.email, "role": "admin"})

    def get_current_session(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        if payload.get("sub") != self.email or payload.get("role") != "admin":
            return None
        if payload.get("jti") in self._revoked:
            return None
        return Session(
            email=payload["sub"],
            role=payload["role"],
            token_id=payload.get("jti", ""),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def sign_out(self, token: Optional[str]) -> bool:
        session = self.get_current_session(token)
        if session is None:
            return False
        now = datetime.now(timezone.utc)
        self._revoked = {jti: exp for jti, exp in self._revoked.items() if exp > now}
        self._revoked[session.token_id] = session.expires_at
        logger.info("Operator %s signed out", session.email)
        return True


sessions = SessionProvider()


def get_session_provider() -> SessionProvider:
    return sessions


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1]


def get_current_admin(
    authorization: Optional[str] = Header(None),
    provider: SessionProvider = Depends(get_session_provider),
) -> Session:
    token = bearer_token(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    session = provider.get_current_session(token)
    if session is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return session


# ===========
# Admin shell
# ===========
CHECKING_SESSION = "checking_session"
UNAUTHENTICATED = "unauthenticated"
AUTHENTICATED = "authenticated"

LOGIN_PATH = "/admin/login"

NAV_ITEMS = [
    ("Dashboard", "/admin"),
    ("Projects", "/admin/projects"),
    ("Skills", "/admin/skills"),
    ("Contact", "/admin/contact"),
    ("Settings", "/admin/settings"),
]


class ShellView(NamedTuple):
    state: str
    kind: str  # "loading" | "redirect" | "login" | "page"
    path: str
    redirect_to: Optional[str] = None
    nav: Sequence[dict] = ()


class AdminShell:
    """Gate in front of every admin page.

    checking_session -> authenticated | unauthenticated. Nothing redirects
    while the session is still being checked.
    """

    def __init__(self, provider: SessionProvider):
        self.provider = provider
        self.state = CHECKING_SESSION
        self.session: Optional[Session] = None

    def check_session(self, token: Optional[str]) -> str:
        self.state = CHECKING_SESSION
        self.session = self.provider.get_current_session(token)
        self.state = AUTHENTICATED if self.session else UNAUTHENTICATED
        return self.state

    def view(self, path: str) -> ShellView:
        if self.state == CHECKING_SESSION:
            return ShellView(self.state, "loading", path)
        if path == LOGIN_PATH:
            return ShellView(self.state, "login", path)
        if self.state == UNAUTHENTICATED:
            return ShellView(self.state, "redirect", path, redirect_to=LOGIN_PATH)
        nav = [{"name": name, "href": href, "active": href == path} for name, href in NAV_ITEMS]
        return ShellView(self.state, "page", path, nav=nav)

    def mount(self, path: str, token: Optional[str]) -> ShellView:
        self.check_session(token)
        return self.view(path)

    def logout(self, token: Optional[str]) -> ShellView:
        self.provider.sign_out(token)
        self.session = None
        self.state = UNAUTHENTICATED
        return ShellView(self.state, "redirect", LOGIN_PATH, redirect_to=LOGIN_PATH)
