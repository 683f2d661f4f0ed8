"""
Security utilities and authentication
"""

import base64
import hashlib
import hmac
import time
from collections import defaultdict
from typing import Dict, List, Mapping, Optional

from fastapi import HTTPException, Depends, Header, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.core.db import get_db
from rsvp_manager.core.exceptions import RateLimitExceededError
from rsvp_manager.models import User

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

# Requests allowed per 60 second window
RATE_LIMITS: Dict[str, int] = {
    "api": 100,
    "auth": 10,
    "sensitive": 5,
    "bulk": 5,
    "webhook": 200,
    "rsvp": 30,
}
RATE_LIMIT_WINDOW = 60

class RateLimiter:
    """Fixed-window in-memory rate limiter"""

    def __init__(self, window_seconds: int = RATE_LIMIT_WINDOW):
        self.window_seconds = window_seconds
        # key -> [window_start, count]
        self.windows: Dict[str, List[float]] = defaultdict(lambda: [0.0, 0])

    def check(self, key: str, limit: int, now: Optional[float] = None) -> bool:
        """Count a request against the key's window; False once the limit is reached"""
        current_time = now if now is not None else time.time()
        window = self.windows[key]

        if current_time - window[0] >= self.window_seconds:
            window[0] = current_time
            window[1] = 0

        if window[1] >= limit:
            return False

        window[1] += 1
        return True

    def reset(self):
        self.windows.clear()

rate_limiter = RateLimiter()

def rate_limit_check(key: str, preset: str = "api") -> bool:
    """Rate limit a client key using one of the named presets"""
    limit = RATE_LIMITS.get(preset, settings.RATE_LIMIT_PER_MINUTE)
    return rate_limiter.check(f"{preset}:{key}", limit)

def enforce_rate_limit(key: str, preset: str = "api"):
    """Raise RateLimitExceededError when the key is over its preset limit"""
    if not rate_limit_check(key, preset):
        raise RateLimitExceededError(retry_after=RATE_LIMIT_WINDOW)

def get_client_ip(request) -> str:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"

def verify_admin_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify platform admin token"""
    if credentials.credentials != settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )
    return credentials.credentials

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the calling user from their API token"""
    user = db.query(User).filter(User.api_token == credentials.credentials).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API token"
        )
    return user

def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    x_cron_secret: Optional[str] = Header(None)
):
    """Verify the shared secret used by the scheduler that calls the cron endpoints"""
    provided = x_cron_secret or (credentials.credentials if credentials else None)
    if not provided or not hmac.compare_digest(provided, settings.CRON_SECRET):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret"
        )
    return True

def compute_twilio_signature(auth_token: str, url: str, params: Mapping[str, str]) -> str:
    """Twilio request signature: HMAC-SHA1 of the URL followed by sorted key/value pairs"""
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")

def validate_twilio_signature(auth_token: str, signature: Optional[str], url: str, params: Mapping[str, str]) -> bool:
    if not signature or not auth_token:
        return False
    expected = compute_twilio_signature(auth_token, url, params)
    return hmac.compare_digest(expected, signature)
