"""
core/security.py
----------------
Password / API-key hashing and JWT token utilities.

Design decisions:
  - bcrypt for both user passwords and API-key secrets; the work factor
    comes from BCRYPT_ROUNDS.
  - API keys have the shape <prefix>_<secret>. The prefix is stored in
    clear text and indexed for lookup, only a hash of the secret is stored.
  - JWT payload contains sub (user_id), tenant_id and role for
    zero-DB-round-trip auth checks in most endpoints.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from passlib.context import CryptContext

from placas.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS
)


# ── Password Utilities ────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the plain-text password."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Constant-time comparison of plain password against stored hash."""
    return pwd_context.verify(plain, hashed)


# ── API Key Utilities ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TenantContext:
    """Authenticated tenant, passed explicitly to whatever acts on its behalf."""
    tenant_id: str
    tenant_name: str


@dataclass(frozen=True)
class GeneratedApiKey:
    prefix: str
    secret_hash: str
    full_key: str  # shown to the caller once, never stored


def generate_api_key(tenant_name: str) -> GeneratedApiKey:
    """
    Build a fresh API key for a tenant.

    The prefix is the first four letters of the tenant name (lowercase,
    letters only, "emp" when nothing is left) plus four random hex chars.
    """
    base = re.sub(r"[^a-z]", "", tenant_name[:4].lower()) or "emp"
    prefix = f"{base}_{uuid.uuid4().hex[:4]}"
    secret = str(uuid.uuid4())
    return GeneratedApiKey(
        prefix=prefix,
        secret_hash=hash_password(secret),
        full_key=f"{prefix}_{secret}",
    )


def split_api_key(api_key: str) -> tuple[str, str] | None:
    """Split '<prefix>_<secret>' at the last underscore, or None if malformed."""
    prefix, sep, secret = api_key.rpartition("_")
    if not sep or not prefix or not secret:
        return None
    return prefix, secret


# ── JWT Utilities ─────────────────────────────────────────────────────────────

def create_access_token(
    subject: str,
    tenant_id: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Mint a JWT access token.

    Args:
        subject: User UUID (stored in 'sub' claim).
        tenant_id: Tenant UUID — embedded so middleware can filter without DB.
        role: 'admin' | 'user'
        expires_delta: Optional custom expiry; defaults to settings value.

    Returns:
        Signed JWT string.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: Dict[str, Any] = {
        "sub": subject,
        "tenant_id": tenant_id,
        "role": role,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
