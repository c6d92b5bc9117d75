"""
Zeene Storefront - Security Utilities
======================================
JWT tokens, input sanitization, field validators, and rate limiting.

NOTE: Sign-in is handled by the hosted auth provider. This module only
decodes the tokens it issues (HS256, shared SECRET_KEY).
"""

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from jose import jwt, JWTError

from config.settings import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, DEBUG
from common.helpers import now_utc

logger = logging.getLogger("storefront.security")


# ==========================================
# JWT Tokens
# ==========================================

def create_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Create a JWT token (sub = user id, plus email/role claims)."""
    to_encode = data.copy()
    to_encode["exp"] = now_utc() + timedelta(minutes=expires_minutes)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ==========================================
# Input Sanitization
# ==========================================

_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_DANGEROUS_PROTOCOLS = re.compile(r"(javascript|vbscript|data):", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_WHITESPACE = re.compile(r"\s+")

MAX_INPUT_LENGTH = 1000


def sanitize_input(value, max_length: int = MAX_INPUT_LENGTH) -> str:
    """Strip markup, script protocols and control chars; collapse whitespace."""
    if not isinstance(value, str):
        return ""
    value = _SCRIPT_TAG.sub("", value)
    value = _DANGEROUS_PROTOCOLS.sub("", value)
    value = _EVENT_HANDLER.sub("", value)
    value = _HTML_TAG.sub("", value)
    value = _CONTROL_CHARS.sub("", value)
    value = _WHITESPACE.sub(" ", value).strip()
    return value[:max_length]


# ==========================================
# Field Validators
# ==========================================

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_PHONE_CHARS_RE = re.compile(r"^[0-9+\-\s()]+$")


def validate_email(email: str) -> bool:
    if not email or len(email) > 254:
        return False
    return bool(_EMAIL_RE.match(email))


def validate_phone(phone: str) -> bool:
    """Digits, +, -, spaces, parentheses; at least 10 digits, at most 20 chars."""
    if not phone or len(phone) > 20 or not _PHONE_CHARS_RE.match(phone):
        return False
    return len(re.sub(r"\D", "", phone)) >= 10


# ==========================================
# Rate Limiting
# ==========================================

class RateLimiter:
    """
    Rate limiter interface. hit() returns True if the request is allowed.
    Swap in a shared-store implementation for multi-instance deployments.
    """

    def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        raise NotImplementedError

    def purge_expired(self) -> int:
        return 0


@dataclass
class _Window:
    count: int
    reset_at: datetime


class InMemoryRateLimiter(RateLimiter):
    """
    Fixed-window counter kept in process memory.
    Only correct for a single-instance deployment: each worker process
    keeps its own counters.
    """

    def __init__(self):
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        now = now_utc()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = _Window(1, now + timedelta(seconds=window_seconds))
                return True
            if window.count >= limit:
                return False
            window.count += 1
            return True

    def purge_expired(self) -> int:
        now = now_utc()
        with self._lock:
            expired = [k for k, w in self._windows.items() if now > w.reset_at]
            for k in expired:
                del self._windows[k]
        return len(expired)

    def reset(self):
        with self._lock:
            self._windows.clear()


rate_limiter: RateLimiter = InMemoryRateLimiter()


# ==========================================
# Security Headers
# ==========================================

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline'",
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
    "img-src 'self' data: https: blob:",
    "font-src 'self' data: https://fonts.gstatic.com",
    "connect-src 'self' https://api.resend.com",
    "object-src 'none'",
    "base-uri 'self'",
    "form-action 'self'",
    "frame-ancestors 'none'",
])


def security_headers() -> Dict[str, str]:
    """Headers added to every response."""
    headers = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "X-XSS-Protection": "1; mode=block",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
        "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    }
    if not DEBUG:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return headers
