from __future__ import annotations

import logging

from django.db import DatabaseError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from accounts.sessions import ROLE_ADMIN, SessionIdentity, session_required
from arena_backend.http import InvalidRequestBody, parse_body

from .services import CONFIRM_TOKEN, MaintenanceError, run_action, wipe_characters

logger = logging.getLogger(__name__)

_ADMIN_ONLY = {"ok": False, "error": "admin only"}


def _json_error(message: str, status: int = 400) -> JsonResponse:
    return JsonResponse({"ok": False, "error": message}, status=status)


def _ok(data=None) -> JsonResponse:
    payload = {"ok": True}
    payload.update(data or {})
    return JsonResponse(payload)


@csrf_exempt
@require_POST
@session_required(role=ROLE_ADMIN, forbidden_body=_ADMIN_ONLY, anonymous_status=403)
def maintenance(request, identity: SessionIdentity):
    try:
        body = parse_body(request)
        result = run_action(body)
    except (InvalidRequestBody, MaintenanceError) as exc:
        return _json_error(str(exc))
    except DatabaseError as exc:
        logger.exception("Maintenance requested by %s failed", identity.name)
        return _json_error(str(exc), status=500)
    return _ok(result)


@csrf_exempt
@require_POST
@session_required(role=ROLE_ADMIN, forbidden_body=_ADMIN_ONLY, anonymous_status=403)
def wipe_all_characters(request, identity: SessionIdentity):
    try:
        body = parse_body(request)
    except InvalidRequestBody as exc:
        return _json_error(str(exc))
    if str(body.get("confirm")) != CONFIRM_TOKEN:
        return _json_error('Provide { "confirm": "YES" } to proceed')

    try:
        deleted = wipe_characters()
    except DatabaseError as exc:
        logger.exception("Character wipe requested by %s failed", identity.name)
        return _json_error(str(exc), status=500)
    return _ok(
        {
            "deleted": deleted,
            "message": "All characters deleted (and cascaded battles cleared).",
        }
    )
