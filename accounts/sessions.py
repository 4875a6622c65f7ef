from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from functools import wraps
from typing import Optional

from django.conf import settings
from django.core import signing
from django.http import HttpRequest, HttpResponse, JsonResponse

from arena_backend.config import ArenaConfig

logger = logging.getLogger(__name__)

COOKIE_NAME = "session"
ROLE_ADMIN = "admin"
ROLE_CHARACTER = "character"
_SALT = "arena.session"


@dataclass(frozen=True, slots=True)
class SessionIdentity:
    role: str
    name: str
    id: Optional[int] = None


def issue_token(identity: SessionIdentity, config: Optional[ArenaConfig] = None) -> Optional[str]:
    config = config or ArenaConfig.from_settings()
    if not config.session_secret:
        logger.warning("ARENA_SESSION_SECRET is not set; cannot issue session for %s", identity.name)
        return None
    return signing.dumps(asdict(identity), key=config.session_secret, salt=_SALT, compress=True)


def verify_token(token: str, config: Optional[ArenaConfig] = None) -> Optional[SessionIdentity]:
    """Return the identity in ``token``, or None if it is invalid or expired."""

    config = config or ArenaConfig.from_settings()
    if not token or not config.session_secret:
        return None
    try:
        payload = signing.loads(
            token,
            key=config.session_secret,
            salt=_SALT,
            max_age=config.session_max_age,
        )
    except signing.SignatureExpired:
        logger.debug("Expired session token.")
        return None
    except signing.BadSignature:
        logger.debug("Rejected session token with bad signature.")
        return None

    if not isinstance(payload, dict):
        return None
    role = payload.get("role")
    name = payload.get("name")
    if role not in (ROLE_ADMIN, ROLE_CHARACTER) or not isinstance(name, str):
        return None
    identity_id = payload.get("id")
    if role == ROLE_CHARACTER and not isinstance(identity_id, int):
        return None
    if identity_id is not None and not isinstance(identity_id, int):
        return None
    return SessionIdentity(role=role, name=name, id=identity_id)


def read_identity(request: HttpRequest, config: Optional[ArenaConfig] = None) -> Optional[SessionIdentity]:
    return verify_token(request.COOKIES.get(COOKIE_NAME, ""), config)


def set_session_cookie(
    response: HttpResponse,
    identity: SessionIdentity,
    config: Optional[ArenaConfig] = None,
) -> None:
    config = config or ArenaConfig.from_settings()
    token = issue_token(identity, config)
    if token is None:
        return
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=config.session_max_age,
        path="/",
        httponly=True,
        samesite="Lax",
        secure=getattr(settings, "ARENA_SECURE_COOKIE", False),
    )


def clear_session_cookie(response: HttpResponse) -> None:
    response.delete_cookie(COOKIE_NAME, path="/", samesite="Lax")


def session_required(
    role: Optional[str] = None,
    forbidden_body: Optional[dict] = None,
    anonymous_status: int = 401,
):
    """Reject requests without a valid session or with the wrong role (403).

    The wrapped view receives the identity as its second argument.
    """

    forbidden_body = forbidden_body or {"error": "forbidden"}

    def decorator(view):
        @wraps(view)
        def _wrapped(request, *args, **kwargs):
            identity = read_identity(request)
            if identity is None:
                if anonymous_status == 403:
                    return JsonResponse(forbidden_body, status=403)
                return JsonResponse({"error": "unauthorized"}, status=anonymous_status)
            if role is not None and identity.role != role:
                return JsonResponse(forbidden_body, status=403)
            return view(request, identity, *args, **kwargs)

        return _wrapped

    return decorator
