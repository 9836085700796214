"""
FormulaFinance Security Utilities

Bearer-token handling. Sessions and tokens are issued by the external
identity provider; this module only validates them and extracts the
caller's opaque identity.
"""

import time
from datetime import datetime, timedelta

import httpx
import structlog
from jose import JWTError, jwt

from core.config import get_settings

logger = structlog.get_logger()


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a locally signed JWT access token (dev/test only)."""
    runtime_settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=24))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, runtime_settings.jwt_secret, algorithm=runtime_settings.jwt_algorithm)


_JWKS_CACHE: dict[str, tuple[float, dict]] = {}


def _is_local_env() -> bool:
    env = get_settings().app_env.strip().lower()
    return env in {"", "local", "dev", "development", "test"}


def _resolve_auth0_issuer() -> str:
    runtime_settings = get_settings()
    if runtime_settings.auth0_issuer:
        return runtime_settings.auth0_issuer.rstrip("/")
    if not runtime_settings.auth0_domain:
        return ""
    domain = runtime_settings.auth0_domain.strip()
    if domain.startswith("http://") or domain.startswith("https://"):
        return domain.rstrip("/")
    return f"https://{domain}".rstrip("/")


def _get_jwks(issuer: str) -> dict | None:
    runtime_settings = get_settings()
    cache_ttl = max(60, int(runtime_settings.auth0_jwks_cache_ttl_seconds))
    now = time.time()
    cached = _JWKS_CACHE.get(issuer)
    if cached and cached[0] > now:
        return cached[1]

    url = f"{issuer}/.well-known/jwks.json"
    try:
        with httpx.Client(timeout=5.0) as client:
            resp = client.get(url)
            resp.raise_for_status()
        payload = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("auth.jwks_fetch_failed", issuer=issuer, error=str(exc))
        return None
    if isinstance(payload, dict) and isinstance(payload.get("keys"), list):
        _JWKS_CACHE[issuer] = (now + cache_ttl, payload)
        return payload
    return None


def _decode_auth0_access_token(token: str) -> dict | None:
    runtime_settings = get_settings()
    issuer = _resolve_auth0_issuer()
    audience = runtime_settings.auth0_audience
    if not issuer or not audience:
        return None

    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        return None
    kid = header.get("kid")
    if not kid:
        return None

    jwks = _get_jwks(issuer)
    if not jwks:
        return None
    key = next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)
    if key is None:
        return None

    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=audience,
            issuer=issuer,
        )
    except JWTError:
        return None


def decode_access_token(token: str) -> dict | None:
    """Decode and validate an access token from Auth0 (preferred) or local JWT."""
    runtime_settings = get_settings()

    auth0_payload = _decode_auth0_access_token(token)
    if auth0_payload is not None:
        return auth0_payload

    # Local HS256 tokens are only honoured when Auth0 is not configured or we are in dev/test.
    if runtime_settings.auth0_domain and runtime_settings.auth0_audience and not _is_local_env():
        return None

    try:
        return jwt.decode(
            token,
            runtime_settings.jwt_secret,
            algorithms=[runtime_settings.jwt_algorithm],
        )
    except JWTError:
        return None


def identity_from_claims(payload: dict) -> str | None:
    """Extract the opaque caller identity from decoded token claims."""
    value = payload.get(get_settings().identity_claim)
    if value is None or value == "":
        return None
    return str(value)
