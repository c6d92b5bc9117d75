"""
Auth Module - Dependencies
===========================
FastAPI dependencies for identifying the shopper and guarding admin routes.
These are injected into route handlers via Depends().

NOTE: Accounts live with the hosted auth provider. We only read the signed
token it issues: `auth_token` cookie or `Authorization: Bearer` header.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Request, Response, Depends, HTTPException, status

from config.settings import SESSION_COOKIE, COOKIE_SECURE, COOKIE_SAMESITE
from common.helpers import get_real_ip
from common.exceptions import RateLimitExceeded
from common.security import decode_token, rate_limiter

logger = logging.getLogger("storefront.security")


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class CheckoutContext:
    """Explicit per-request identity handed to order placement."""
    user: Optional[CurrentUser] = None
    client_ip: str = "unknown"

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None


def _read_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return request.cookies.get("auth_token")


def get_current_user(request: Request) -> Optional[CurrentUser]:
    """
    Identify the current user from the auth token.
    Returns CurrentUser or None (anonymous).
    """
    token = _read_token(request)
    if not token:
        return None

    payload = decode_token(token)
    if not payload:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    return CurrentUser(
        id=str(user_id),
        email=payload.get("email"),
        role=payload.get("role", "user"),
    )


def get_checkout_context(request: Request, user=Depends(get_current_user)) -> CheckoutContext:
    return CheckoutContext(user=user, client_ip=get_real_ip(request))


def require_login(user=Depends(get_current_user)) -> CurrentUser:
    """Require any authenticated user. Raises 401 if not logged in."""
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="login_required")
    return user


def require_admin(user=Depends(get_current_user)) -> CurrentUser:
    """Only allow store administrators. 401 when anonymous, 403 otherwise."""
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="login_required")
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def get_session_key(request: Request, response: Response) -> str:
    """Anonymous cart session id; issues a cookie on first visit."""
    key = request.cookies.get(SESSION_COOKIE)
    if not key:
        key = secrets.token_urlsafe(32)
        response.set_cookie(
            SESSION_COOKIE, key,
            httponly=True, secure=COOKIE_SECURE, samesite=COOKIE_SAMESITE,
            max_age=60 * 60 * 24 * 30,
        )
    return key


def rate_limit(scope: str, limit: int, window_seconds: int):
    """
    Dependency factory: per-IP request budget for one route.
    Usage: Depends(rate_limit("checkout", CHECKOUT_RATE_LIMIT, CHECKOUT_RATE_WINDOW))
    """
    def _check(request: Request):
        ip = get_real_ip(request)
        if not rate_limiter.hit(f"{scope}:{ip}", limit, window_seconds):
            logger.warning(f"Rate limit exceeded: {scope} from {ip}")
            raise RateLimitExceeded()
        return ip
    return _check
