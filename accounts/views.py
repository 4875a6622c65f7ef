from __future__ import annotations

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from arena.models import Character
from arena_backend.http import InvalidRequestBody, json_error, json_ok, parse_body

from .models import AdminAccount
from .sessions import (
    ROLE_ADMIN,
    ROLE_CHARACTER,
    SessionIdentity,
    clear_session_cookie,
    read_identity,
    set_session_cookie,
)


def _invalid_credentials() -> JsonResponse:
    return json_error("invalid credentials", status=401)


@csrf_exempt
@require_POST
def login(request):
    try:
        payload = parse_body(request)
    except InvalidRequestBody as exc:
        return json_error(str(exc))

    name = payload.get("name")
    password = payload.get("password")
    if not isinstance(name, str) or not isinstance(password, str):
        return _invalid_credentials()

    account = AdminAccount.objects.filter(name=name).first()
    if account is not None:
        if not account.check_password(password):
            return _invalid_credentials()
        response = json_ok({"ok": True, "role": account.role, "user": {"name": account.name}})
        set_session_cookie(response, SessionIdentity(role=account.role, name=account.name))
        return response

    character = Character.objects.filter(name=name).first()
    if character is None or not character.check_password(password):
        return _invalid_credentials()

    response = json_ok(
        {
            "ok": True,
            "role": ROLE_CHARACTER,
            "user": {"id": character.id, "name": character.name},
        }
    )
    set_session_cookie(
        response,
        SessionIdentity(role=ROLE_CHARACTER, name=character.name, id=character.id),
    )
    return response


@csrf_exempt
@require_POST
def logout(request):
    response = json_ok({"ok": True})
    clear_session_cookie(response)
    return response


@require_GET
def me(request):
    identity = read_identity(request)
    if identity is None:
        return json_ok({"user": None})
    if identity.role == ROLE_ADMIN:
        return json_ok({"user": {"name": identity.name, "role": ROLE_ADMIN}})

    character = Character.objects.filter(id=identity.id).first()
    if character is None:
        return json_ok({"user": None})
    return json_ok({"user": character.to_payload()})
