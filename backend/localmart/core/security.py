"""
Password hashing, session tokens and the per-request auth context.

Handlers never read ambient session state: they receive a resolved
``RequestContext`` through FastAPI dependencies.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from localmart.core.config import settings
from localmart.core.exceptions import Forbidden, Unauthorized
from localmart.models.user import UserRole

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_v1_prefix}/auth/login",
    auto_error=False,
)


@dataclass(frozen=True)
class RequestContext:
    """Identity resolved from the session token."""

    user_id: int
    role: UserRole

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER

    @property
    def is_shopkeeper(self) -> bool:
        return self.role == UserRole.SHOPKEEPER


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_session_token(
    user_id: int,
    role: UserRole,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a session token carrying the user id and role."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.session_expire_minutes)
    )
    payload = {"sub": str(user_id), "role": role.value, "exp": expire}
    return jwt.encode(
        payload,
        settings.session_secret_key,
        algorithm=settings.session_algorithm,
    )


def decode_session_token(token: str) -> RequestContext:
    """
    Verify a session token.

    Raises:
        Unauthorized: If the signature, expiry or claims are invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.session_secret_key,
            algorithms=[settings.session_algorithm],
        )
        return RequestContext(
            user_id=int(payload["sub"]),
            role=UserRole(payload["role"]),
        )
    except (JWTError, KeyError, ValueError) as e:
        raise Unauthorized("Invalid session") from e


async def get_request_context(
    request: Request,
    bearer: str | None = Depends(oauth2_scheme),
) -> RequestContext:
    """Resolve the caller from the bearer header or the session cookie."""
    token = bearer or request.cookies.get(settings.session_cookie_name)
    if not token:
        raise Unauthorized()
    return decode_session_token(token)


async def require_customer(
    ctx: RequestContext = Depends(get_request_context),
) -> RequestContext:
    if not ctx.is_customer:
        raise Forbidden("Customer account required")
    return ctx


async def require_shopkeeper(
    ctx: RequestContext = Depends(get_request_context),
) -> RequestContext:
    if not ctx.is_shopkeeper:
        raise Forbidden("Shopkeeper account required")
    return ctx
