"""
Authentication and team authorization helpers.

Tokens are lightweight JSON Web Tokens signed with HMAC-SHA256 and
base64url encoded.  Besides ``sub`` and ``exp`` they carry the
caller's directory ``groups``, which are the only input used to decide
team access.  The dependencies below turn a bearer token into a
``Principal`` and guard team-scoped routes with the access resolver.
"""

import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from .access import AccessLevel, resolve_access_level
from .config import settings
from ..schemas.auth import AUTOMATION_SUBJECT, Principal

logger = logging.getLogger(__name__)


def _b64_url_encode(data: bytes) -> str:
    """Base64-url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64-url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    """Compute HMAC-SHA256 signature of a message using the given secret."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(data: Dict[str, Any], expires_delta: Optional[int] = None) -> str:
    """Create a signed JWT with the given claims.

    Parameters
    ----------
    data : dict
        Claims to embed, e.g. ``{"sub": "jdoe", "groups": ["SRE_USERS"]}``.
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.

    Returns
    -------
    str
        Token of the form ``header.payload.signature``.
    """
    to_encode = data.copy()
    exp_seconds = expires_delta or settings.access_token_expire_minutes * 60
    to_encode["exp"] = int(time.time()) + exp_seconds
    header = {"alg": settings.algorithm, "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, settings.secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT and return its claims, or ``None`` if it is invalid or expired."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    try:
        actual_sig = _b64_url_decode(signature_b64)
        if not hmac.compare_digest(_sign(signing_input, settings.secret_key), actual_sig):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    exp = data.get("exp")
    if not isinstance(exp, (int, float)) or int(exp) < int(time.time()):
        return None
    return data


security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """Dependency that authenticates the caller.

    Tokens listed in ``AUTOMATION_TOKENS`` authenticate the scheduler
    as the ``automation`` principal.  Every other token must be a valid
    JWT whose ``groups`` claim is a list of strings; anything else is
    rejected with 401 rather than being treated as "no groups".
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    token = credentials.credentials

    if token in settings.automation_token_set:
        return Principal(subject=AUTOMATION_SUBJECT, is_portal_admin=True)

    payload = decode_access_token(token)
    if not payload:
        raise _unauthorized("Invalid or expired token")
    if payload.get("sub") == AUTOMATION_SUBJECT:
        # Reserved for AUTOMATION_TOKENS.
        raise _unauthorized("Invalid token subject")
    try:
        groups = payload.get("groups", [])
        principal = Principal(
            subject=payload.get("sub") or "",
            email=payload.get("email"),
            name=payload.get("name"),
            groups=groups,
            is_portal_admin=bool(settings.portal_admin_group_set & set(groups or [])),
        )
    except (ValidationError, TypeError) as exc:
        logger.warning("Rejected token with malformed claims: %s", exc)
        raise _unauthorized("Malformed token claims") from exc
    return principal


def require_portal_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Dependency allowing only portal administrators (and the scheduler)."""
    if not principal.is_portal_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return principal


def require_team_access(minimum: str = "user") -> Callable[..., Principal]:
    """Dependency factory enforcing access to the ``team_id`` path parameter.

    Use it as ``Depends(require_team_access("admin"))`` on routes that
    carry ``{team_id}``.  A caller with no access (including a missing
    or inactive team) receives 404 so the team's existence is not
    revealed; a caller with user access on an admin route receives 403.
    The automation principal is treated as an admin of every active
    team.

    Parameters
    ----------
    minimum : str
        ``"user"`` or ``"admin"``.

    Returns
    -------
    Callable
        A dependency returning the authenticated ``Principal``.
    """
    required = AccessLevel(minimum)

    async def _team_dependency(
        team_id: int = Path(..., ge=1),
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        from ..services.team_service import TeamService

        team = await TeamService.find_team(team_id)
        if principal.is_automation:
            level = AccessLevel.ADMIN if team is not None and team.is_active else AccessLevel.NONE
        else:
            level = resolve_access_level(team, principal.groups)
        if level is AccessLevel.NONE:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
        if not level.satisfies(required):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _team_dependency
