"""Security utilities: opaque tokens, password hashing, identity credentials."""

import base64
import hashlib
import hmac
import secrets
from dataclasses import dataclass

import jwt

from portal.core.config import settings
from portal.core.errors import UnauthorizedError
from portal.utils.normalization import normalize_phone


DEMO_CREDENTIAL = "demo_token"
DEMO_AUTH_PREFIX = "demo_user_"

PASSWORD_ALGORITHM = "pbkdf2_sha256"
PASSWORD_ITERATIONS = 310_000


# =============================================================================
# Opaque bearer tokens
# =============================================================================

def generate_admin_token() -> str:
    """Generate a random staff session token (32 bytes, URL-safe base64)."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """Create SHA256 hash of a bearer token for storage and lookup."""
    return hashlib.sha256(token.encode()).hexdigest()


def hash_ip(ip_address: str | None) -> str | None:
    """One-way hash of a client IP for consent records."""
    if not ip_address:
        return None
    return hashlib.sha256(ip_address.encode()).hexdigest()[:32]


# =============================================================================
# Staff passwords (salted PBKDF2)
# =============================================================================

def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _unb64(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def hash_password(password: str, *, iterations: int = PASSWORD_ITERATIONS) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<digest>``."""
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=32)
    return f"{PASSWORD_ALGORITHM}${iterations}${_b64(salt)}${_b64(digest)}"


def verify_password(password: str, password_hash: str | None) -> bool:
    """Constant-time check of a password against a stored hash."""
    try:
        algorithm, iterations, salt_b64, digest_b64 = (password_hash or "").split("$", 3)
        if algorithm != PASSWORD_ALGORITHM:
            return False
        expected = _unb64(digest_b64)
        actual = hashlib.pbkdf2_hmac(
            "sha256",
            password.encode("utf-8"),
            _unb64(salt_b64),
            int(iterations),
            dklen=len(expected),
        )
    except (ValueError, TypeError):
        return False
    return hmac.compare_digest(actual, expected)


# =============================================================================
# Identity provider credentials
# =============================================================================

@dataclass(frozen=True)
class VerifiedIdentity:
    """Identity asserted by the phone-OTP provider."""

    auth_user_id: str
    phone: str | None  # last 10 digits
    is_demo: bool = False


def verify_identity_credential(
    access_token: str | None,
    *,
    claimed_phone: str | None = None,
) -> VerifiedIdentity:
    """
    Verify an identity-provider access token.

    Tokens are HS256 JWTs signed with IDENTITY_JWT_SECRET; ``sub`` is the
    provider user id and ``phone`` the verified number. When DEMO_AUTH_ENABLED
    is set the literal ``demo_token`` is accepted and the caller's phone is
    trusted (still normalized).

    Raises:
        UnauthorizedError: token missing, malformed, expired or badly signed
    """
    if not access_token:
        raise UnauthorizedError("Missing credential")

    if access_token == DEMO_CREDENTIAL:
        if not settings.DEMO_AUTH_ENABLED:
            raise UnauthorizedError("Invalid session")
        phone = normalize_phone(claimed_phone)
        if not phone:
            raise UnauthorizedError("Phone required for demo")
        return VerifiedIdentity(auth_user_id=f"{DEMO_AUTH_PREFIX}{phone}", phone=phone, is_demo=True)

    try:
        payload = jwt.decode(
            access_token,
            settings.IDENTITY_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.IDENTITY_JWT_AUDIENCE,
        )
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid session")

    subject = payload.get("sub")
    if not subject:
        raise UnauthorizedError("Invalid session")

    return VerifiedIdentity(auth_user_id=str(subject), phone=normalize_phone(payload.get("phone")))
