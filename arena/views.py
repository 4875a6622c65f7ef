from __future__ import annotations

import logging

from django.db import IntegrityError, transaction
from django.db.models import F
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from accounts.sessions import (
    ROLE_ADMIN,
    ROLE_CHARACTER,
    SessionIdentity,
    read_identity,
    session_required,
    set_session_cookie,
)
from arena_backend.config import ArenaConfig
from arena_backend.http import InvalidRequestBody, json_error, json_ok, parse_body

from .locks import BattleLockError, character_battle_lock
from .models import Character
from .services import (
    BattleRecordError,
    CooldownActive,
    NoOpponentAvailable,
    battles_involving,
    run_battle,
)

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 24
DESCRIPTION_MAX_LENGTH = 100
CHARACTER_LIST_LIMIT = 200
LEADERBOARD_LIMIT = 50
RECORDS_LIMIT = 100


@csrf_exempt
@require_POST
@session_required(role=ROLE_CHARACTER, forbidden_body={"error": "character session required"})
def battle(request, identity: SessionIdentity):
    config = ArenaConfig.from_settings()
    try:
        with character_battle_lock(identity.id, timeout=config.lock_timeout):
            outcome = run_battle(identity.id, config=config)
    except CooldownActive as exc:
        return json_error("cooldown", status=429, remain=exc.remain)
    except NoOpponentAvailable:
        return json_error("no available opponent", status=409)
    except Character.DoesNotExist:
        return json_error("character not found", status=404)
    except BattleLockError as exc:
        return json_error("busy", status=503, detail=str(exc))
    except BattleRecordError:
        return json_error("battle failed", status=500)
    except Exception:
        logger.exception("Battle request for character %s failed", identity.id)
        return json_error("battle failed", status=500)
    return json_ok(outcome.to_payload())


def _clean_text(value, field: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field} must not be empty.")
    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise ValueError(f"{field} must be at most {max_length} characters.")
    return cleaned


def _list_characters(request):
    characters = [c.to_payload() for c in Character.objects.order_by("-id")[:CHARACTER_LIST_LIMIT]]
    return json_ok(characters)


def _create_character(request):
    config = ArenaConfig.from_settings()
    identity = read_identity(request, config)
    is_admin = identity is not None and identity.role == ROLE_ADMIN
    if not is_admin and not config.self_registration:
        return json_error("admin only", status=403)

    try:
        payload = parse_body(request)
        name = _clean_text(payload.get("name"), "name", NAME_MAX_LENGTH)
        description = _clean_text(payload.get("description"), "description", DESCRIPTION_MAX_LENGTH)
    except (InvalidRequestBody, ValueError) as exc:
        return json_error(str(exc))

    password = payload.get("password")
    if password is not None and (not isinstance(password, str) or not password):
        return json_error("password must be a non-empty string.")
    if password is None:
        if not is_admin:
            return json_error("password is required.")
        password = config.default_password

    character = Character(name=name, description=description)
    character.set_password(password)
    try:
        with transaction.atomic():
            character.save()
    except IntegrityError:
        return json_error("name already taken", status=409)

    logger.info("Created character %s (%s)", character.id, character.name)
    response = json_ok(character.to_payload())
    # The creator continues as the new character.
    set_session_cookie(
        response,
        SessionIdentity(role=ROLE_CHARACTER, name=character.name, id=character.id),
        config,
    )
    return response


@csrf_exempt
@require_http_methods(["GET", "POST"])
def characters(request):
    if request.method == "POST":
        return _create_character(request)
    return _list_characters(request)


@require_GET
def leaderboard(request):
    ranked = Character.objects.order_by("-elo", "-wins", "id")[:LEADERBOARD_LIMIT]
    return json_ok([c.to_payload() for c in ranked])


@require_GET
def records(request):
    try:
        character_id = int(request.GET.get("id") or 0)
    except (TypeError, ValueError):
        character_id = 0
    if character_id <= 0:
        return json_error("id required")

    character = Character.objects.filter(id=character_id).first()
    if character is None:
        return json_error("not found", status=404)

    battles = (
        battles_involving(character_id)
        .annotate(a_name=F("a__name"), b_name=F("b__name"))
        .order_by("-created_at", "-id")[:RECORDS_LIMIT]
    )
    return json_ok(
        {
            "user": character.to_payload(),
            "battles": [b.to_payload() for b in battles],
        }
    )
